"""
Package dimension lookup.

The Orchestrator depends only on the DimensionLookup protocol; the SQL
implementation reads the `sizes` table.
"""
import logging
from typing import Optional, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shipping_calculator.core.exceptions import ErrorKind, ShippingError
from shipping_calculator.core.request_logger import RequestLogger, bind_logger
from shipping_calculator.models.collection_size import CollectionSize
from shipping_calculator.services.payload_builder import rounded_measurements
from shipping_calculator.services.shipping_types import PackageDimensions

logger = logging.getLogger(__name__)


class DimensionLookup(Protocol):
    async def get(
        self,
        collection_id: str,
        size: str,
        log: Optional[RequestLogger] = None,
    ) -> Optional[PackageDimensions]:
        ...


class SqlDimensionLookup:
    """DimensionLookup backed by the `sizes` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(
        self,
        collection_id: str,
        size: str,
        log: Optional[RequestLogger] = None,
    ) -> Optional[PackageDimensions]:
        """
        Fetch dimensions for a collection/size pair.

        Returns:
            PackageDimensions, or None when no row matches

        Raises:
            ShippingError(DATABASE): query failed
            ShippingError(CONFIGURATION): row exists but measurements are unusable
                or too small to survive rounding for FedEx
        """
        log = bind_logger(logger, log)
        log.info("Fetching collection dimensions", data={"collection": collection_id, "size": size})

        try:
            result = await self.db.execute(
                select(CollectionSize).where(
                    CollectionSize.collection_id == collection_id,
                    CollectionSize.size == size,
                )
            )
            row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            log.error(f"Dimension lookup failed: {type(e).__name__}")
            raise ShippingError(
                ErrorKind.DATABASE,
                f"Database error: {type(e).__name__}",
                "Unable to retrieve shipping information. Please try again.",
            ) from e

        if row is None:
            log.warning("No dimensions found", data={"collection": collection_id, "size": size})
            return None

        try:
            dims = PackageDimensions(
                weight_kg=row.weight_kg,
                length_cm=row.length_cm,
                width_cm=row.width_cm,
                height_cm=row.height_cm,
            )
        except (TypeError, ValueError) as e:
            log.error(f"Invalid dimension data for {collection_id}/{size}: {e}")
            raise ShippingError(
                ErrorKind.CONFIGURATION,
                f"Invalid dimension data for {collection_id}/{size}: {e}",
                "Shipping information for this size is incomplete. Please contact support.",
            ) from e

        measured = rounded_measurements(dims)
        too_small = sorted(name for name, value in measured.items() if value <= 0)
        if too_small:
            log.error(
                f"Dimension data for {collection_id}/{size} rounds to zero",
                data={"fields": too_small, "measured": measured},
            )
            raise ShippingError(
                ErrorKind.CONFIGURATION,
                f"Dimension data for {collection_id}/{size} rounds to zero: {', '.join(too_small)}",
                "Shipping information for this size is incomplete. Please contact support.",
            )

        log.info(
            "Dimensions retrieved",
            data={
                "weight_kg": dims.weight_kg,
                "dimensional_weight": round(dims.dimensional_weight, 3),
                "billed_weight": round(dims.billed_weight, 3),
            },
        )
        return dims
