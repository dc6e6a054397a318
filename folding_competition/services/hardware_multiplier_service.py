"""
Hardware multiplier recalculation from an external GPU performance catalog.

Each hardware's multiplier is the best average PPD in the catalog divided by its
own average PPD, so the fastest hardware gets 1.0 and slower hardware earns
proportionally more multiplied points. Users keep the multiplied points they
already earned; new multipliers only apply to future deltas.
"""

import logging
from typing import Dict, Iterable, List

from sqlalchemy import select, func

from folding_competition.services.base import BaseService
from folding_competition.services.locks import CompetitionLocks
from folding_competition.database.models import Hardware, HardwareMake, HardwareType, User
from folding_competition.data_models.stats import CatalogEntry, HardwareUpdateResult
from folding_competition.utils.exceptions import InvalidStateError
from folding_competition.utils.multiplier import MultiplierCalculator

logger = logging.getLogger(__name__)

class HardwareMultiplierService(BaseService):
    """Service for recalculating hardware multipliers."""
    
    def __init__(self, session_factory, locks: CompetitionLocks):
        super().__init__(session_factory)
        self.locks = locks
    
    async def recalculate_multipliers(self, catalog: Iterable[CatalogEntry]) -> HardwareUpdateResult:
        """
        Create, update and delete tracked hardware to match the catalog.
        
        Entries without a positive average PPD are ignored. The whole update is
        applied in one transaction, and rejected before any change if tracked
        hardware missing from the catalog is still used by a user.
        
        Raises:
            InvalidStateError: hardware to delete is used by a user
            ValueError: the catalog has no usable entries
        """
        result = HardwareUpdateResult()
        usable: Dict[str, CatalogEntry] = {}
        for entry in catalog:
            if not entry.average_ppd or entry.average_ppd <= 0:
                logger.warning(f"Ignoring hardware '{entry.hardware_name}' with no average PPD")
                result.ignored.append(entry.hardware_name)
                continue
            usable[entry.hardware_name] = entry
        
        if not usable:
            raise ValueError("Hardware catalog contains no entries with an average PPD")
        
        best_ppd = max(entry.average_ppd for entry in usable.values())
        
        async with self.locks.competition():
            async with self.get_session() as session:
                existing = {h.hardware_name: h for h in (await session.execute(select(Hardware))).scalars()}
                
                to_delete = [h for name, h in existing.items() if name not in usable]
                await self._check_unused(session, to_delete)
                
                for hardware in to_delete:
                    await session.delete(hardware)
                    result.deleted.append(hardware.hardware_name)
                
                for name, entry in usable.items():
                    multiplier = MultiplierCalculator.calculate_multiplier(best_ppd, entry.average_ppd)
                    hardware = existing.get(name)
                    
                    if hardware is None:
                        session.add(Hardware(
                            hardware_name=name,
                            display_name=entry.display_name,
                            hardware_make=self._parse_make(entry.hardware_make),
                            hardware_type=HardwareType.GPU,
                            multiplier=multiplier,
                            average_ppd=entry.average_ppd
                        ))
                        result.created.append(name)
                    elif hardware.multiplier != multiplier or hardware.average_ppd != entry.average_ppd:
                        logger.debug(
                            f"Hardware '{name}': multiplier {hardware.multiplier} -> {multiplier}, "
                            f"PPD {hardware.average_ppd:,} -> {entry.average_ppd:,}"
                        )
                        hardware.multiplier = multiplier
                        hardware.average_ppd = entry.average_ppd
                        result.updated.append(name)
        
        logger.info(
            f"Hardware multipliers recalculated: {len(result.created)} created, {len(result.updated)} updated, "
            f"{len(result.deleted)} deleted, {len(result.ignored)} ignored"
        )
        return result
    
    async def _check_unused(self, session, hardware: List[Hardware]):
        for h in hardware:
            usage = await session.execute(select(func.count(User.id)).where(User.hardware_id == h.id))
            count = usage.scalar()
            if count:
                raise InvalidStateError(f"Hardware '{h.hardware_name}' is used by {count} user(s) and cannot be deleted")
    
    @staticmethod
    def _parse_make(make: str) -> HardwareMake:
        try:
            return HardwareMake(make.lower())
        except ValueError:
            raise ValueError(f"Unknown hardware make: {make}") from None
