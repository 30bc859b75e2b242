"""Diehard fan platform: raffle and ticketing engine."""
