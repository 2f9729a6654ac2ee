"""Tenant lookup at the settings boundary."""

from dataclasses import dataclass

from eva.models.settings import FirmFeatures
from eva.storage.base import DataStore, Query


@dataclass(frozen=True)
class FirmProfile:
    """A law firm's display name and parsed feature configuration."""

    id: str
    name: str
    features: FirmFeatures


async def load_firm(store: DataStore, tenant_id: str | None, default_name: str = "Prima Facie") -> FirmProfile | None:
    """Load a firm and parse its `features` column once.

    Returns:
        The firm profile, or None when the tenant does not exist
    """
    if not tenant_id:
        return None
    row = await store.select_one("law_firms", Query().select("id, name, features").eq("id", tenant_id))
    if not row:
        return None
    return FirmProfile(
        id=row["id"],
        name=row.get("name") or default_name,
        features=FirmFeatures.from_column(row.get("features")),
    )
