"""
FastAPI dependencies for the shipping routes.
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shipping_calculator.core.database import get_db
from shipping_calculator.services.collection_service import SqlDimensionLookup
from shipping_calculator.services.credential_store import FedexCredentialStore
from shipping_calculator.services.credential_tester import FedexCredentialTester
from shipping_calculator.services.shipping_service import ShippingCalculator


async def get_credential_store(db: AsyncSession = Depends(get_db)) -> FedexCredentialStore:
    return FedexCredentialStore(db)


async def get_shipping_calculator(db: AsyncSession = Depends(get_db)) -> ShippingCalculator:
    """Fresh calculator per request; FedEx clients are created and closed inside handle()."""
    return ShippingCalculator(
        dimension_lookup=SqlDimensionLookup(db),
        credential_store=FedexCredentialStore(db),
    )


async def get_credential_tester():
    tester = FedexCredentialTester()
    try:
        yield tester
    finally:
        await tester.close()
