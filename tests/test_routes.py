"""HTTP tests for the stat value, stat definition and export routes."""

import io

from openpyxl import load_workbook

WE = "2024-01-04"


# ============================================================================
# Health and auth
# ============================================================================


class TestHealthAndAuth:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    def test_reads_need_a_token(self, client, stats):
        resp = client.get("/services/getWeeklyStats", params={"stat_id": stats.gi.id})
        assert resp.status_code == 401

    def test_garbage_token(self, client, stats):
        resp = client.get(
            "/services/getWeeklyStats",
            params={"stat_id": stats.gi.id},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert resp.status_code == 401

    def test_cookie_token(self, client, stats, org, auth_headers):
        token = auth_headers(org.owner)["Authorization"].split(" ", 1)[1]
        client.cookies.set("access_token", token)
        resp = client.get("/services/getWeeklyStats", params={"stat_id": stats.gi.id})
        assert resp.status_code == 200


# ============================================================================
# Weekly values
# ============================================================================


class TestWeeklyRoutes:
    def test_log_and_read_weekly(self, client, stats, org, auth_headers):
        headers = auth_headers(org.owner)
        resp = client.post(
            "/services/logWeeklyStats",
            json={"StatID": stats.gi.id, "Weekending": WE, "Value": "1234.5"},
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["written"] == 1

        resp = client.get("/services/getWeeklyStats", params={"stat": "gi"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json() == [{
            "week_ending": WE,
            "value": 123450,
            "display": "1234.50",
            "author_user_id": org.owner.id,
        }]

    def test_non_owner_gets_scope_error(self, client, stats, org, auth_headers):
        resp = client.post(
            "/services/logWeeklyStats",
            json={"stat_id": stats.gi.id, "week_ending": WE, "value": "5"},
            headers=auth_headers(org.other),
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == "not_assigned"

    def test_percentage_out_of_range(self, client, stats, org, auth_headers):
        resp = client.post(
            "/services/logWeeklyStats",
            json={"stat_id": stats.close_rate.id, "week_ending": WE, "value": 150},
            headers=auth_headers(org.owner),
        )
        assert resp.status_code == 400
        body = resp.json()
        assert body["code"] == "out_of_range"
        assert "150" in body["message"]

    def test_bad_week_ending(self, client, stats, org, auth_headers):
        resp = client.post(
            "/services/logWeeklyStats",
            json={"stat_id": stats.gi.id, "week_ending": "2024-01-05", "value": "5"},
            headers=auth_headers(org.owner),
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "The weekending date is invalid"

    def test_schema_rejects_missing_stat_id(self, client, stats, org, auth_headers):
        resp = client.post(
            "/services/logWeeklyStats",
            json={"week_ending": WE, "value": "5"},
            headers=auth_headers(org.owner),
        )
        assert resp.status_code == 422

    def test_save_weekly_edit_batch(self, client, stats, org, auth_headers):
        headers = auth_headers(org.owner)
        resp = client.post(
            "/services/saveWeeklyEdit",
            json=[
                {"StatID": stats.gi.id, "Weekending": "2023-12-28", "Value": "1"},
                {"StatID": stats.gi.id, "Weekending": WE, "Value": "2"},
            ],
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["written"] == 2

    def test_save_weekly_edit_empty(self, client, stats, org, auth_headers):
        resp = client.post("/services/saveWeeklyEdit", json=[], headers=auth_headers(org.owner))
        assert resp.status_code == 400
        assert resp.json()["message"] == "Empty payload"

    def test_missing_stat_reference(self, client, stats, org, auth_headers):
        resp = client.get("/services/getWeeklyStats", headers=auth_headers(org.owner))
        assert resp.status_code == 400

    def test_unknown_stat(self, client, stats, org, auth_headers):
        resp = client.get("/services/getWeeklyStats", params={"stat": "NOPE"}, headers=auth_headers(org.owner))
        assert resp.status_code == 404

    def test_weeks(self, client, stats, org, auth_headers):
        resp = client.get("/services/weeks", params={"count": 3}, headers=auth_headers(org.owner))
        assert resp.status_code == 200
        assert len(resp.json()["weeks"]) == 4


class TestAdminRoutes:
    def test_non_admin_blocked(self, client, stats, org, auth_headers):
        resp = client.post(
            "/services/admin/logWeeklyStats",
            json={"stat_id": stats.div_gi.id, "week_ending": WE, "value": "5"},
            headers=auth_headers(org.owner),
        )
        assert resp.status_code == 403

    def test_admin_writes_divisional(self, client, stats, org, auth_headers):
        resp = client.post(
            "/services/admin/logWeeklyStats",
            json={"stat_id": stats.div_gi.id, "week_ending": WE, "value": "5"},
            headers=auth_headers(org.admin),
        )
        assert resp.status_code == 200

        resp = client.get(
            "/services/getWeeklyStats", params={"stat_id": stats.div_gi.id}, headers=auth_headers(org.other),
        )
        assert resp.json()[0]["display"] == "5.00"

    def test_admin_cannot_write_personal(self, client, stats, org, auth_headers):
        resp = client.post(
            "/services/admin/saveWeeklyEdit",
            json=[{"stat_id": stats.gi.id, "week_ending": WE, "value": "5"}],
            headers=auth_headers(org.admin),
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == "personal_owner_only"


# ============================================================================
# Daily values
# ============================================================================


class TestDailyRoutes:
    def test_save_7r_and_read(self, client, stats, org, auth_headers):
        headers = auth_headers(org.owner)
        resp = client.post(
            "/services/save7R",
            params={"thisWeek": WE},
            json=[{"StatID": stats.gi.id, "Thursday": "100", "Friday": "50", "Quota": "1000"}],
            headers=headers,
        )
        assert resp.status_code == 200
        assert resp.json()["written"] == 3

        daily = client.get("/services/getDailyStats", params={"date": WE, "stat_id": stats.gi.id}, headers=headers)
        assert [d["display"] for d in daily.json()["days"]] == ["100.00", "50.00", "", "", ""]

        grid = client.get("/services/get7R", params={"date": WE, "stat": "GI"}, headers=headers)
        assert grid.status_code == 200
        assert [r["cumulative"] for r in grid.json()["rows"]] == ["100.00", "150.00", "150.00", "150.00", "150.00"]
        assert grid.json()["rows"][0]["quota"] == "200.00"

    def test_save_7r_bad_week(self, client, stats, org, auth_headers):
        resp = client.post(
            "/services/save7R",
            params={"thisWeek": "2024-01-08"},
            json=[{"stat_id": stats.gi.id, "days": ["1"]}],
            headers=auth_headers(org.owner),
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "invalid_week_ending"

    def test_admin_save_7r(self, client, stats, org, auth_headers):
        resp = client.post(
            "/services/admin/save7R",
            params={"thisWeek": WE},
            json=[{"stat_id": stats.main_gi.id, "days": ["1", "2"], "quota": "10"}],
            headers=auth_headers(org.admin),
        )
        assert resp.status_code == 200
        assert resp.json()["written"] == 3


# ============================================================================
# Stat definitions
# ============================================================================


class TestStatDefinitionRoutes:
    def test_assigned(self, client, stats, org, auth_headers):
        resp = client.get("/api/stats/assigned", headers=auth_headers(org.owner))
        assert resp.status_code == 200
        assert [s["short_id"] for s in resp.json()["items"]] == ["CLOSE", "DIV-GI", "GI", "SITES"]

    def test_all_is_admin_only(self, client, stats, org, auth_headers):
        assert client.get("/api/stats/all", headers=auth_headers(org.owner)).status_code == 403
        resp = client.get("/api/stats/all", headers=auth_headers(org.admin))
        assert resp.json()["total"] == 6
        total = next(s for s in resp.json()["items"] if s["short_id"] == "TOTAL")
        assert sorted(total["dependent_stat_ids"]) == sorted([stats.gi.id, stats.div_gi.id])

    def test_create_update_delete(self, client, stats, org, auth_headers):
        headers = auth_headers(org.admin)
        resp = client.post(
            "/api/stats",
            json={
                "short_id": "grand", "full_name": "Grand Total", "type": "main",
                "value_type": "currency", "is_calculated": True,
                "dependent_stat_ids": [stats.main_gi.id, stats.div_gi.id],
            },
            headers=headers,
        )
        assert resp.status_code == 201
        created = resp.json()
        assert created["short_id"] == "GRAND"
        assert sorted(created["dependent_stat_ids"]) == sorted([stats.main_gi.id, stats.div_gi.id])

        resp = client.patch(f"/api/stats/{created['id']}", json={"full_name": "Grand"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["full_name"] == "Grand"

        resp = client.delete(f"/api/stats/{created['id']}", headers=headers)
        assert resp.status_code == 200
        assert client.get("/api/stats/all", headers=headers).json()["total"] == 6

    def test_duplicate_short_id(self, client, stats, org, auth_headers):
        resp = client.post(
            "/api/stats",
            json={"short_id": "GI", "full_name": "Dup", "type": "main", "value_type": "currency"},
            headers=auth_headers(org.admin),
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "duplicate_short_id"

    def test_create_with_unknown_dependency_is_not_stored(self, client, stats, org, auth_headers):
        headers = auth_headers(org.admin)
        resp = client.post(
            "/api/stats",
            json={
                "short_id": "calc", "full_name": "Calc", "type": "main", "value_type": "currency",
                "is_calculated": True, "dependent_stat_ids": [99999],
            },
            headers=headers,
        )
        assert resp.status_code == 404
        assert resp.json()["code"] == "not_found"
        assert client.get("/api/stats/all", headers=headers).json()["total"] == 6

    def test_patch_with_bad_dependencies_changes_nothing(self, client, stats, org, auth_headers):
        headers = auth_headers(org.admin)
        resp = client.patch(
            f"/api/stats/{stats.total.id}",
            json={"full_name": "Renamed", "dependent_stat_ids": [stats.sites.id]},
            headers=headers,
        )
        assert resp.status_code == 400
        items = client.get("/api/stats/all", headers=headers).json()["items"]
        total = next(s for s in items if s["short_id"] == "TOTAL")
        assert total["full_name"] == "TOTAL stat"
        assert len(total["dependent_stat_ids"]) == 2

    def test_other_company_stat_not_found(self, client, stats, org, auth_headers):
        resp = client.patch(f"/api/stats/{stats.gi.id}", json={"full_name": "x"}, headers=auth_headers(org.outsider))
        assert resp.status_code == 404


# ============================================================================
# Export
# ============================================================================


class TestExport:
    def _seed(self, client, stats, org, auth_headers):
        client.post(
            "/services/logWeeklyStats",
            json={"stat_id": stats.gi.id, "week_ending": WE, "value": "1234.5"},
            headers=auth_headers(org.owner),
        )

    def test_weekly_csv(self, client, stats, org, auth_headers):
        self._seed(client, stats, org, auth_headers)
        resp = client.get("/api/export/weekly", params={"stat_id": stats.gi.id}, headers=auth_headers(org.owner))
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        lines = resp.text.splitlines()
        assert lines[0] == "week_ending,value"
        assert lines[1] == f"{WE},1234.50"

    def test_weekly_xlsx(self, client, stats, org, auth_headers):
        self._seed(client, stats, org, auth_headers)
        resp = client.get(
            "/api/export/weekly",
            params={"stat_id": stats.gi.id, "format": "xlsx"},
            headers=auth_headers(org.owner),
        )
        assert resp.status_code == 200
        ws = load_workbook(io.BytesIO(resp.content)).active
        assert ws.title == "Weekly"
        assert [c.value for c in ws[2]] == [WE, "1234.50"]

    def test_7r_csv(self, client, stats, org, auth_headers):
        resp = client.get(
            "/api/export/7r", params={"stat": "SITES", "date": WE}, headers=auth_headers(org.owner),
        )
        assert resp.status_code == 200
        assert resp.text.splitlines()[0] == "day,date,this_week,cumulative,last_week,quota"

    def test_export_respects_scope(self, client, stats, org, auth_headers):
        resp = client.get("/api/export/weekly", params={"stat_id": stats.gi.id}, headers=auth_headers(org.other))
        assert resp.status_code == 403

    def test_bad_format(self, client, stats, org, auth_headers):
        resp = client.get(
            "/api/export/weekly",
            params={"stat_id": stats.gi.id, "format": "pdf"},
            headers=auth_headers(org.owner),
        )
        assert resp.status_code == 422
