"""
API endpoint tests for all routes.
Uses in-memory SQLite + dependency-overridden FastAPI test client.
"""
from sqlalchemy import func, select

from menu_planner.api.auth import create_access_token
from menu_planner.errors import AITimeoutError
from menu_planner.models import FamilyMember, MealDiner, MenuPlan, UserDinerPreference
from menu_planner.services import diner_store


def meal_of(plan_json, day, meal_type):
    return next(m for m in plan_json["meals"] if m["day_of_week"] == day and m["meal_type"] == meal_type)


def create_payload(**overrides):
    payload = {
        "start_date": "2026-01-05",
        "end_date": "2026-01-07",
        "days": ["monday", "tuesday"],
        "meal_types": ["lunch", "dinner"],
        "dishes_per_meal": 2,
    }
    payload.update(overrides)
    return payload


# ===================== HEALTH / ROOT =====================


async def test_root(client):
    r = await client.get("/")
    assert r.status_code == 200
    assert r.json()["status"] == "running"


async def test_health(client):
    r = await client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


# ===================== AUTH =====================


async def test_login_success(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/login",
        data={"username": "test@example.com", "password": "testpass123"},
    )
    assert r.status_code == 200
    assert r.json()["token_type"] == "bearer"
    assert "access_token" in r.json()


async def test_login_wrong_password(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/login",
        data={"username": "test@example.com", "password": "wrong"},
    )
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "AUTH_ERROR"


async def test_register_new_user(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/register",
        json={"email": "new@example.com", "full_name": "New User", "password": "pass12345"},
    )
    assert r.status_code == 200
    assert r.json()["email"] == "new@example.com"
    assert r.json()["default_diners"] == 2


async def test_register_duplicate_email(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/register",
        json={"email": "test@example.com", "full_name": "Dup", "password": "pass12345"},
    )
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_register_short_password(unauth_client, seed_data):
    r = await unauth_client.post(
        "/api/auth/register",
        json={"email": "short@example.com", "full_name": "Short", "password": "pass"},
    )
    assert r.status_code == 400


async def test_get_me(client):
    r = await client.get("/api/auth/me")
    assert r.status_code == 200
    assert r.json()["email"] == "test@example.com"


async def test_protected_route_no_token(unauth_client, seed_data):
    r = await unauth_client.get("/api/auth/me")
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "AUTH_ERROR"


async def test_protected_route_bad_token(unauth_client, seed_data):
    r = await unauth_client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401


# ===================== PROFILE =====================


async def test_update_profile(client):
    r = await client.put("/api/users/me", json={"preferences": "Low salt", "default_diners": 4})
    assert r.status_code == 200
    assert r.json()["preferences"] == "Low salt"
    assert r.json()["default_diners"] == 4


async def test_update_profile_invalid_default_diners(client):
    r = await client.put("/api/users/me", json={"default_diners": 0})
    assert r.status_code == 400


async def test_delete_account_removes_household(client, seed_data, plan, db_session):
    user_id, other_id = seed_data["user"].id, seed_data["other"].id
    meal = plan.meals[0]
    r = await client.put(
        f"/api/menu-plans/{plan.id}/meals/{meal.id}",
        json={"family_member_ids": [seed_data["carol"].id]},
    )
    assert r.status_code == 200

    r = await client.delete("/api/users/me")
    assert r.status_code == 200

    for model in (FamilyMember, UserDinerPreference, MenuPlan):
        result = await db_session.execute(
            select(func.count()).select_from(model).where(model.user_id == user_id)
        )
        assert result.scalar() == 0
    result = await db_session.execute(select(func.count()).select_from(MealDiner))
    assert result.scalar() == 0

    result = await db_session.execute(select(FamilyMember.name).where(FamilyMember.user_id == other_id))
    assert result.scalars().all() == ["Stranger"]

    r = await client.get("/api/users/me")
    assert r.status_code == 401


# ===================== FAMILY MEMBERS =====================


async def test_family_member_crud(client):
    r = await client.post("/api/family-members/", json={"name": "Dana", "dietary_restrictions": "Gluten free"})
    assert r.status_code == 201
    member_id = r.json()["id"]

    r = await client.get("/api/family-members/")
    assert [m["name"] for m in r.json()] == ["Alice", "Bob", "Carol", "Dana"]

    r = await client.put(f"/api/family-members/{member_id}", json={"preferences": "Likes soup"})
    assert r.status_code == 200
    assert r.json()["preferences"] == "Likes soup"
    assert r.json()["dietary_restrictions"] == "Gluten free"

    r = await client.delete(f"/api/family-members/{member_id}")
    assert r.status_code == 200
    r = await client.get(f"/api/family-members/{member_id}")
    assert r.status_code == 404


async def test_family_member_name_too_long(client):
    r = await client.post("/api/family-members/", json={"name": "x" * 101})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_other_users_member_not_visible(client, seed_data):
    r = await client.get(f"/api/family-members/{seed_data['stranger'].id}")
    assert r.status_code == 404


async def test_delete_member_removes_bulk_rows(client, seed_data, db_session):
    carol_id = seed_data["carol"].id
    r = await client.delete(f"/api/family-members/{carol_id}")
    assert r.status_code == 200

    result = await db_session.execute(
        select(UserDinerPreference).where(UserDinerPreference.family_member_id == carol_id)
    )
    assert result.scalars().all() == []


async def test_delete_member_blocked_by_custom_meal(client, seed_data, plan, db_session):
    meal = plan.meals[0]
    r = await client.put(
        f"/api/menu-plans/{plan.id}/meals/{meal.id}",
        json={"family_member_ids": [seed_data["carol"].id]},
    )
    assert r.status_code == 200

    r = await client.delete(f"/api/family-members/{seed_data['carol'].id}")
    assert r.status_code == 400
    assert r.json()["error"]["details"] == {"meal_count": 1}

    result = await db_session.execute(select(MealDiner).where(MealDiner.meal_id == meal.id))
    assert len(result.scalars().all()) == 1


async def test_delete_member_picked_up_after_check(client, seed_data, plan, db_session, monkeypatch):
    carol_id = seed_data["carol"].id
    plan_id, meal_id = plan.id, plan.meals[0].id
    r = await client.put(f"/api/menu-plans/{plan_id}/meals/{meal_id}", json={"family_member_ids": [carol_id]})
    assert r.status_code == 200

    count_references = diner_store.count_custom_references
    calls = []

    async def count_before_meal_update(db, family_member_id):
        calls.append(family_member_id)
        if len(calls) == 1:
            return 0
        return await count_references(db, family_member_id)

    monkeypatch.setattr(diner_store, "count_custom_references", count_before_meal_update)

    r = await client.delete(f"/api/family-members/{carol_id}")
    assert r.status_code == 400
    body = r.json()["error"]
    assert body["code"] == "VALIDATION_ERROR"
    assert body["retryable"] is False
    assert body["details"] == {"meal_count": 1}
    assert "delete their menu plan" in body["message"]

    result = await db_session.execute(select(MealDiner.family_member_id).where(MealDiner.meal_id == meal_id))
    assert result.scalars().all() == [carol_id]
    result = await db_session.execute(
        select(UserDinerPreference).where(UserDinerPreference.family_member_id == carol_id)
    )
    assert len(result.scalars().all()) == 1


# ===================== DINER PREFERENCES =====================


async def test_get_and_set_bulk_preferences(client, seed_data):
    r = await client.get("/api/diner-preferences/lunch")
    assert r.status_code == 200
    assert r.json() == {
        "meal_type": "lunch",
        "family_member_ids": [seed_data["alice"].id, seed_data["bob"].id],
    }

    r = await client.put("/api/diner-preferences/LUNCH", json={"family_member_ids": [seed_data["carol"].id]})
    assert r.status_code == 200
    assert r.json()["family_member_ids"] == [seed_data["carol"].id]

    r = await client.delete("/api/diner-preferences/lunch")
    assert r.status_code == 200
    r = await client.get("/api/diner-preferences/lunch")
    assert r.json()["family_member_ids"] == []


async def test_invalid_meal_type(client):
    r = await client.get("/api/diner-preferences/breakfast")
    assert r.status_code == 400
    body = r.json()["error"]
    assert body["code"] == "VALIDATION_ERROR"
    assert body["message"] == 'mealType must be either "lunch" or "dinner"'
    assert body["retryable"] is False
    assert "timestamp" in body


async def test_bulk_preferences_with_foreign_member(client, seed_data):
    r = await client.put("/api/diner-preferences/dinner", json={"family_member_ids": [seed_data["stranger"].id]})
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_FOUND"


# ===================== MENU PLANS =====================


async def test_create_menu_plan(client, ai):
    r = await client.post("/api/menu-plans/", json=create_payload())
    assert r.status_code == 201
    data = r.json()
    assert data["status"] == "draft"
    assert len(data["meals"]) == 4

    dinner = meal_of(data, "monday", "dinner")
    assert dinner["has_custom_diners"] is False
    assert dinner["diner_count"] == 3
    assert [d["name"] for d in dinner["diners"]] == ["Alice", "Bob", "Carol"]
    assert len(dinner["dishes"]) == 2
    assert dinner["version"] == 1


async def test_create_menu_plan_days_default_to_range(client):
    r = await client.post("/api/menu-plans/", json=create_payload(days=None, meal_types=["dinner"]))
    assert r.status_code == 201
    assert [m["day_of_week"] for m in r.json()["meals"]] == ["monday", "tuesday"]


async def test_create_menu_plan_rejects_empty_days(client, ai):
    r = await client.post("/api/menu-plans/", json=create_payload(days=[]))
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "At least one day is required"
    assert ai.dish_calls == []


async def test_create_menu_plan_validation(client):
    r = await client.post("/api/menu-plans/", json=create_payload(end_date="2026-02-01"))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"

    r = await client.post("/api/menu-plans/", json=create_payload(diner_count=2, diners=[{"name": "A"}]))
    assert r.status_code == 400

    r = await client.post("/api/menu-plans/", json={"start_date": "not-a-date"})
    assert r.status_code == 400
    assert r.json()["error"]["details"]


async def test_list_and_get_menu_plan(client, plan):
    r = await client.get("/api/menu-plans/")
    assert [p["id"] for p in r.json()] == [plan.id]

    r = await client.get(f"/api/menu-plans/{plan.id}")
    assert r.status_code == 200
    assert len(r.json()["meals"]) == 4


async def test_get_missing_plan(client):
    r = await client.get("/api/menu-plans/9999")
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "NOT_FOUND"


async def test_update_meal_diners(client, seed_data, plan):
    meal = plan.meals[0]
    r = await client.put(
        f"/api/menu-plans/{plan.id}/meals/{meal.id}",
        json={"family_member_ids": [seed_data["carol"].id], "version": 1},
    )
    assert r.status_code == 200
    data = r.json()
    assert data["has_custom_diners"] is True
    assert data["diner_count"] == 1
    assert data["diners"][0]["name"] == "Carol"
    assert data["version"] == 2


async def test_update_meal_stale_version(client, seed_data, plan):
    meal = plan.meals[0]
    url = f"/api/menu-plans/{plan.id}/meals/{meal.id}"
    await client.put(url, json={"family_member_ids": [seed_data["carol"].id], "version": 1})

    r = await client.put(url, json={"family_member_ids": [seed_data["bob"].id], "version": 1})
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "CONFLICT"
    assert r.json()["error"]["retryable"] is True


async def test_update_meal_without_diners_regenerates(client, plan, ai):
    meal = plan.meals[0]
    r = await client.put(f"/api/menu-plans/{plan.id}/meals/{meal.id}", json={"dish_count": 3})
    assert r.status_code == 200
    assert r.json()["has_custom_diners"] is False
    assert len(r.json()["dishes"]) == 3
    assert len(ai.dish_calls) == 1


async def test_regenerate_and_revert_endpoints(client, seed_data, plan):
    meal = plan.meals[1]
    base = f"/api/menu-plans/{plan.id}/meals/{meal.id}"
    await client.put(base, json={"family_member_ids": [seed_data["alice"].id]})

    r = await client.post(f"{base}/regenerate")
    assert r.status_code == 200
    assert r.json()["has_custom_diners"] is True
    assert r.json()["diner_count"] == 1

    r = await client.post(f"{base}/revert-to-bulk", json={"version": r.json()["version"]})
    assert r.status_code == 200
    assert r.json()["has_custom_diners"] is False
    assert r.json()["diner_count"] == 3

    r = await client.get(base)
    assert r.json()["has_custom_diners"] is False


async def test_confirmed_plan_is_locked(client, seed_data, plan):
    r = await client.post(f"/api/menu-plans/{plan.id}/confirm")
    assert r.status_code == 200
    assert r.json()["status"] == "confirmed"

    meal = plan.meals[0]
    r = await client.put(
        f"/api/menu-plans/{plan.id}/meals/{meal.id}",
        json={"family_member_ids": [seed_data["bob"].id]},
    )
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "FORBIDDEN"

    r = await client.post(f"/api/menu-plans/{plan.id}/confirm")
    assert r.status_code == 400


async def test_ai_timeout_is_retryable(client, plan, ai):
    async def timeout(**kwargs):
        raise AITimeoutError("AI service timed out - please try again")

    ai.generate_dishes = timeout
    r = await client.post(f"/api/menu-plans/{plan.id}/meals/{plan.meals[0].id}/regenerate")
    assert r.status_code == 504
    assert r.json()["error"]["code"] == "AI_TIMEOUT"
    assert r.json()["error"]["retryable"] is True


async def test_delete_menu_plan(client, plan):
    r = await client.delete(f"/api/menu-plans/{plan.id}")
    assert r.status_code == 200
    r = await client.get(f"/api/menu-plans/{plan.id}")
    assert r.status_code == 404


async def test_other_users_plan_forbidden(unauth_client, seed_data, plan):
    token = create_access_token(data={"sub": seed_data["other"].email})
    r = await unauth_client.get(
        f"/api/menu-plans/{plan.id}", headers={"Authorization": f"Bearer {token}"}
    )
    assert r.status_code == 403


# ===================== SHOPPING LISTS =====================


async def test_shopping_list_requires_confirmed_plan(client, plan):
    r = await client.post("/api/shopping-lists/", json={"menu_plan_id": plan.id})
    assert r.status_code == 400


async def test_end_to_end_household_week(client, seed_data, ai):
    """Bulk selection, one override, confirm, then shop for what people actually eat"""
    alice, bob, carol = seed_data["alice"].id, seed_data["bob"].id, seed_data["carol"].id

    r = await client.put("/api/diner-preferences/dinner", json={"family_member_ids": [alice, bob]})
    assert r.status_code == 200

    r = await client.post("/api/menu-plans/", json=create_payload(meal_types=["dinner"]))
    plan = r.json()
    assert [m["diner_count"] for m in plan["meals"]] == [2, 2]

    tuesday = meal_of(plan, "tuesday", "dinner")
    r = await client.put(
        f"/api/menu-plans/{plan['id']}/meals/{tuesday['id']}",
        json={"family_member_ids": [alice, bob, carol]},
    )
    assert r.json()["diner_count"] == 3

    r = await client.post(f"/api/menu-plans/{plan['id']}/confirm")
    assert r.status_code == 200

    r = await client.post("/api/shopping-lists/", json={"menu_plan_id": plan["id"]})
    assert r.status_code == 201
    first = r.json()
    carrots = next(i for i in first["items"] if i["ingredient"] == "Carrot")
    assert carrots["quantity"] == "5"

    # Bob stops coming to dinner; only the bulk Monday dinner follows
    await client.put("/api/diner-preferences/dinner", json={"family_member_ids": [alice]})
    r = await client.post("/api/shopping-lists/", json={"menu_plan_id": plan["id"]})
    carrots = next(i for i in r.json()["items"] if i["ingredient"] == "Carrot")
    assert carrots["quantity"] == "4"

    r = await client.get(f"/api/shopping-lists/{first['id']}")
    assert r.status_code == 200
    assert r.json()["items"] == first["items"]

    r = await client.get(f"/api/menu-plans/{plan['id']}/shopping-lists")
    assert len(r.json()) == 2
