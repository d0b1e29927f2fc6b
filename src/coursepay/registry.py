"""
Gateway registry — the enabled gateways for one checkout, which one is
primary, and what each can do.
"""

import logging
from typing import Iterable, Optional, Sequence

from coursepay.errors import ConfigurationError, NoGatewaysAvailableError, UnsupportedGatewayError
from coursepay.models.gateway import GatewayDescriptor, PaymentMethodKind, SavedPaymentMethod
from coursepay.services import GatewayConfigService

logger = logging.getLogger("coursepay.registry")


class Selection:
    __slots__ = ("gateway_id", "method", "saved_method_id")

    def __init__(self, gateway_id: str, method: PaymentMethodKind, saved_method_id: Optional[str] = None):
        self.gateway_id = gateway_id
        self.method = method
        self.saved_method_id = saved_method_id

    def __repr__(self) -> str:
        return f"Selection(gateway_id={self.gateway_id!r}, method={self.method.value!r})"


class GatewayRegistry:
    def __init__(self, gateways: Iterable[GatewayDescriptor]):
        self._gateways: list[GatewayDescriptor] = []
        seen: set[str] = set()
        for g in gateways:
            if g.gateway_id in seen:
                logger.warning(f"Duplicate gateway descriptor for {g.gateway_id}, keeping the first")
                continue
            seen.add(g.gateway_id)
            self._gateways.append(g)

        primaries = [g.gateway_id for g in self._gateways if g.is_primary]
        if len(primaries) > 1:
            raise ConfigurationError(
                f"More than one primary gateway configured: {', '.join(primaries)}",
                details={"primary": primaries},
            )

    @classmethod
    async def load(cls, service: GatewayConfigService) -> "GatewayRegistry":
        return cls(await service.list_enabled_gateways())

    def __len__(self) -> int:
        return len(self._gateways)

    def __iter__(self):
        return iter(self._gateways)

    @property
    def enabled(self) -> list[GatewayDescriptor]:
        return list(self._gateways)

    @property
    def primary(self) -> Optional[GatewayDescriptor]:
        """The primary gateway, falling back to the first enabled one."""
        for g in self._gateways:
            if g.is_primary:
                return g
        return self._gateways[0] if self._gateways else None

    def is_enabled(self, gateway_id: str) -> bool:
        return any(g.gateway_id == gateway_id for g in self._gateways)

    def get(self, gateway_id: str) -> GatewayDescriptor:
        for g in self._gateways:
            if g.gateway_id == gateway_id:
                return g
        raise UnsupportedGatewayError(gateway_id)

    def require_any(self) -> None:
        if not self._gateways:
            raise NoGatewaysAvailableError()

    def default_selection(self, saved_methods: Sequence[SavedPaymentMethod] = ()) -> Optional[Selection]:
        """Pick the gateway and variant to preselect when the buyer has not chosen.

        A direct-charge primary with saved instruments of its own defaults to
        the saved instrument (the default one first) instead of card entry.
        """
        primary = self.primary
        if primary is None:
            return None

        if primary.capabilities.direct_charge:
            owned = [m for m in saved_methods if m.gateway_id == primary.gateway_id]
            if owned:
                owned.sort(key=lambda m: not m.is_default)
                return Selection(primary.gateway_id, PaymentMethodKind.SAVED_INSTRUMENT, owned[0].id)
            return Selection(primary.gateway_id, PaymentMethodKind.DIRECT_CHARGE)

        return Selection(primary.gateway_id, primary.native_method())
