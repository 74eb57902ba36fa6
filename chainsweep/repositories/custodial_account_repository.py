"""
Custodial account repository.

Data access layer for CustodialAccount model.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chainsweep.models.custodial_account import CustodialAccount
from chainsweep.repositories.base import BaseRepository


class CustodialAccountRepository(BaseRepository[CustodialAccount]):
    """Custodial account repository with network queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize custodial account repository."""
        super().__init__(CustodialAccount, session)

    async def get_by_network(self, network: str) -> list[CustodialAccount]:
        """
        Get all accounts on a network, ordered by account index.

        Args:
            network: Network name

        Returns:
            List of accounts
        """
        stmt = (
            select(CustodialAccount)
            .where(CustodialAccount.network == network)
            .order_by(CustodialAccount.account_index.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
