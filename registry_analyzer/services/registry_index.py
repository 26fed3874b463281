from collections.abc import Iterable

from registry_analyzer.models.schemas import EntityState, RegistryArea, RegistryDevice


class RegistryIndex:
    """Key lookups across the device, area and state snapshots.

    Misses are part of the model (dangling device/area references), so every
    lookup returns ``None``/``False`` instead of raising.
    """

    def __init__(
        self,
        devices_by_id: dict[str, RegistryDevice],
        areas_by_id: dict[str, RegistryArea],
        states_by_entity_id: dict[str, EntityState],
    ) -> None:
        self.devices_by_id = devices_by_id
        self.areas_by_id = areas_by_id
        self.states_by_entity_id = states_by_entity_id

    def device(self, device_id: str | None) -> RegistryDevice | None:
        if not device_id:
            return None
        return self.devices_by_id.get(device_id)

    def area(self, area_id: str | None) -> RegistryArea | None:
        if not area_id:
            return None
        return self.areas_by_id.get(area_id)

    def has_device(self, device_id: str) -> bool:
        return device_id in self.devices_by_id

    def has_state(self, entity_id: str) -> bool:
        return entity_id in self.states_by_entity_id


def build_registry_index(
    devices: Iterable[RegistryDevice],
    areas: Iterable[RegistryArea],
    states: Iterable[EntityState],
) -> RegistryIndex:
    # Later rows win on duplicate keys, same as building a map from a list.
    return RegistryIndex(
        devices_by_id={device.id: device for device in devices},
        areas_by_id={area.area_id: area for area in areas},
        states_by_entity_id={state.entity_id: state for state in states},
    )
