def _budget(name="Household", **overrides):
    payload = {
        "name": name,
        "is_default": False,
        "time_period": "monthly",
        "category_limits": [
            {"category_id": "c-dining", "limit": 150},
            {"category_id": "c-groceries", "limit": 400},
        ],
    }
    payload.update(overrides)
    return payload


def test_total_defaults_to_sum_of_limits(client):
    response = client.post("/api/budgets", json=_budget())

    assert response.status_code == 201
    assert response.json()["total_budget_amount"] == 550


def test_explicit_total_is_kept(client):
    response = client.post("/api/budgets", json=_budget(total_budget_amount=500))

    assert response.json()["total_budget_amount"] == 500


def test_negative_limit_is_rejected(client):
    payload = _budget(category_limits=[{"category_id": "c-dining", "limit": -1}])

    assert client.post("/api/budgets", json=payload).status_code == 422


def test_blank_name_is_rejected(client):
    assert client.post("/api/budgets", json=_budget(name=" ")).status_code == 400


def test_only_one_default_budget(client):
    first = client.post("/api/budgets", json=_budget("First", is_default=True)).json()
    second = client.post("/api/budgets", json=_budget("Second", is_default=True)).json()

    defaults = {b["id"]: b["is_default"] for b in client.get("/api/budgets").json()}

    assert defaults == {first["id"]: False, second["id"]: True}


def test_update_to_default_clears_others(client):
    first = client.post("/api/budgets", json=_budget("First", is_default=True)).json()
    second = client.post("/api/budgets", json=_budget("Second")).json()

    response = client.put(f"/api/budgets/{second['id']}", json=_budget("Second", is_default=True))

    assert response.status_code == 200
    assert response.json()["is_default"] is True
    assert client.get(f"/api/budgets/{first['id']}").json()["is_default"] is False


def test_update_replaces_limits(client):
    budget = client.post("/api/budgets", json=_budget()).json()

    response = client.put(
        f"/api/budgets/{budget['id']}",
        json=_budget(category_limits=[{"category_id": "c-travel", "limit": 75}]),
    )

    body = response.json()
    assert body["category_limits"] == [{"category_id": "c-travel", "limit": 75.0}]
    assert body["total_budget_amount"] == 75


def test_delete_and_missing(client):
    budget = client.post("/api/budgets", json=_budget()).json()

    assert client.delete(f"/api/budgets/{budget['id']}").status_code == 200
    assert client.get(f"/api/budgets/{budget['id']}").status_code == 404
    assert client.put(f"/api/budgets/{budget['id']}", json=_budget()).status_code == 404
    assert client.delete(f"/api/budgets/{budget['id']}").status_code == 404
