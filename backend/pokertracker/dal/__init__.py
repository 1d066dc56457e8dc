"""Data Access Layer -- MongoDB repository classes and connection management."""

from pokertracker.dal.database import (
    connect_to_mongo,
    close_mongo_connection,
    ensure_indexes,
    get_database,
)
from pokertracker.dal.games_dal import GameDAL
from pokertracker.dal.groups_dal import GroupDAL
from pokertracker.dal.payments_dal import PaymentDAL
from pokertracker.dal.settlements_dal import SettlementDAL
from pokertracker.dal.stats_dal import StatsDAL

__all__ = [
    # Connection management
    "connect_to_mongo",
    "close_mongo_connection",
    "ensure_indexes",
    "get_database",
    # DAL classes
    "GameDAL",
    "GroupDAL",
    "PaymentDAL",
    "SettlementDAL",
    "StatsDAL",
]
