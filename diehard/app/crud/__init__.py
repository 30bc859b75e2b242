"""Diehard CRUD facade.

======================================================================
Purpose:
    • Export the CRUD classes of the raffle subsystem.
    • Data access only: no coin movement, no commits.
======================================================================
"""

from diehard.app.crud.raffle_tickets_crud import BuyerTotals, TicketLedgerCRUD
from diehard.app.crud.raffles_crud import RafflesCRUD

__all__ = ["RafflesCRUD", "TicketLedgerCRUD", "BuyerTotals"]
