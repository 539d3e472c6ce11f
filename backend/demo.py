"""Create demo characters for development/testing."""

import json

from charsheet.core import SheetCore, clear_all_data

DEMO_CHARACTERS = [
    {
        "name": "Rex Emberhand",
        "subtitle": "Guardian of the Ash Road",
        "level": 3,
        "domain1": "Valor",
        "domain2": "Blade",
        "attributes": {"agility": 1, "strength": 2, "finesse": 0, "instinct": 1, "presence": 0, "knowledge": -1},
        "hope": {"current": 2, "max": 6},
        "experiences": [{"name": "Caravan Guard", "modifier": 2}],
        "journal": {"entries": [{"title": "The pass", "content": "Smoke over the mountain again."}]},
    },
    {
        "name": "Ilsa Thornwick",
        "subtitle": "Wandering Lorekeeper",
        "level": 2,
        "domain1": "Codex",
        "domain2": "Grace",
        "attributes": {"agility": 0, "strength": -1, "finesse": 1, "instinct": 1, "presence": 2, "knowledge": 2},
        "stress": {"circles": [{"active": True}, {"active": False}, {"active": False}, {"active": False}, {"active": False}]},
    },
]

DEMO_SCOPED_KEYS = {
    "equipment": {"items": [{"name": "Longsword", "equipped": True}]},
    "journal-entries": [{"title": "First night", "content": "We made camp by the river."}],
}


def create_demo_data(core: SheetCore) -> list[str]:
    """Wipe existing sheet data and create the demo characters. Returns their ids."""
    clear_all_data(core.kv, core.session.prefix)
    core.store.clear_cache()
    core.session.set_current_id(None)

    ids = []
    for seed in DEMO_CHARACTERS:
        record = core.store.create_character(seed)
        ids.append(record["id"])
        core.session.set_current_id(record["id"])
        for name, value in DEMO_SCOPED_KEYS.items():
            core.proxy.write(f"{core.session.prefix}{name}", json.dumps(value))

    core.store.switch_to(ids[0])
    return ids
