"""Read-only lookups for the team and task steps."""

from app.schemas.onboarding import OnboardingOptions, OptionItem, TaskItem
from app.services.store import DataStore
from app.utils.cache import cached


def _person_name(row: dict) -> str:
    return f"{row.get('first_name', '')} {row.get('last_name', '')}".strip()


@cached(ttl=300, prefix="onboarding_options")
async def load_options(store: DataStore) -> OnboardingOptions:
    teams = await store.query("teams", order_by="name")
    managers = await store.query("managers", {"is_active": True}, order_by="last_name")
    recruiters = await store.query("recruiters", {"is_active": True}, order_by="last_name")
    return OnboardingOptions(
        teams=[OptionItem(id=t["id"], name=t["name"]) for t in teams],
        managers=[
            OptionItem(id=m["id"], name=_person_name(m), team_id=m.get("team_id"))
            for m in managers
        ],
        recruiters=[OptionItem(id=r["id"], name=_person_name(r)) for r in recruiters],
    )


async def tasks_for(store: DataStore, manager_id: str | None, team_id: str | None) -> list[TaskItem]:
    """Active tasks set by the applicant's manager or for their team."""
    rows: dict[str, dict] = {}
    if manager_id:
        for row in await store.query("tasks", {"is_active": True, "manager_id": manager_id}):
            rows[row["id"]] = row
    if team_id:
        for row in await store.query("tasks", {"is_active": True, "team_id": team_id}):
            rows[row["id"]] = row

    managers: dict[str, str] = {}
    items = []
    for row in sorted(rows.values(), key=lambda r: (r.get("created_at") is None, r.get("created_at"))):
        owner = row.get("manager_id")
        if owner and owner not in managers:
            manager = await store.get("managers", owner)
            managers[owner] = _person_name(manager) if manager else None
        items.append(TaskItem(
            id=row["id"],
            title=row["title"],
            description=row.get("description"),
            manager_name=managers.get(owner) if owner else None,
        ))
    return items
