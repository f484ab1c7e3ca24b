from buildtask.models import Report
from buildtask.schemas.reports import ReportKind
from tests.conftest import stored_files

PERIOD = {"dateFrom": "2024-01-01", "dateTo": "2024-01-31"}


def generate(client, kind, **params):
    return client.post(f"/api/generate-report/{kind}", params={**PERIOD, **params})


class TestGenerateEndpoint:
    def test_construction_progress(self, client, site_manager, foundation_team):
        response = generate(client, "construction-progress", userId=site_manager.id, teamId=foundation_team.id)

        assert response.status_code == 200
        body = response.json()
        assert body["reportId"] > 0
        assert body["fileName"].startswith("construction-progress_")
        assert body["message"]

    def test_employee_load_for_one_employee(self, client, db, site_manager):
        response = generate(client, "employee-load", userId=site_manager.id, targetUserId=site_manager.id)

        assert response.status_code == 200
        report = db.get(Report, response.json()["reportId"])
        assert '"scopeId": %d' % site_manager.id in report.parameters

    def test_team_efficiency_without_scope(self, client, site_manager, foundation_team):
        assert generate(client, "team-efficiency", userId=site_manager.id).status_code == 200

    def test_invalid_date(self, client, store, site_manager):
        response = client.post(
            "/api/generate-report/employee-load",
            params={"dateFrom": "2024-13-01", "dateTo": "2024-01-31", "userId": site_manager.id},
        )

        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"
        assert stored_files(store) == []

    def test_inverted_range(self, client, site_manager):
        response = client.post(
            "/api/generate-report/employee-load",
            params={"dateFrom": "2024-02-01", "dateTo": "2024-01-01", "userId": site_manager.id},
        )
        assert response.status_code == 400

    def test_missing_team(self, client, site_manager):
        response = generate(client, "construction-progress", userId=site_manager.id)
        assert response.status_code == 400
        assert "teamId" in response.json()["detail"]

    def test_unknown_team(self, client, site_manager):
        response = generate(client, "construction-progress", userId=site_manager.id, teamId=999)
        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"

    def test_unknown_creator(self, client, db, store, foundation_team):
        response = generate(client, "construction-progress", userId=999, teamId=foundation_team.id)
        assert response.status_code == 404
        assert db.query(Report).count() == 0
        assert stored_files(store) == []

    def test_unknown_kind(self, client, site_manager):
        assert generate(client, "weekly-digest", userId=site_manager.id).status_code == 422


class TestDownloadEndpoint:
    def test_download(self, client, store, site_manager):
        report_id = generate(client, "employee-load", userId=site_manager.id).json()["reportId"]

        response = client.get(f"/api/generate-report/download/{report_id}")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "attachment" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")
        assert response.content == stored_files(store)[0].read_bytes()

    def test_download_unknown(self, client):
        response = client.get("/api/generate-report/download/999")
        assert response.status_code == 404

    def test_download_missing_file(self, client, store, site_manager):
        report_id = generate(client, "employee-load", userId=site_manager.id).json()["reportId"]
        for path in stored_files(store):
            path.unlink()

        response = client.get(f"/api/generate-report/download/{report_id}")
        assert response.status_code == 404
        assert response.json()["kind"] == "not_found"


class TestCatalogEndpoints:
    def test_list_and_get_reports(self, client, site_manager):
        report_id = generate(client, "employee-load", userId=site_manager.id).json()["reportId"]

        listed = client.get("/database/reports").json()
        assert [r["id"] for r in listed] == [report_id]
        assert listed[0]["type_name"] == ReportKind.EMPLOYEE_LOAD.type_name
        assert listed[0]["created_by_name"] == site_manager.name

        response = client.get(f"/database/reports/{report_id}")
        assert response.status_code == 200
        assert response.json()["file_name"].startswith("employee-load_")

    def test_filter_reports(self, client, site_manager):
        report = generate(client, "employee-load", userId=site_manager.id).json()
        type_id = client.get(f"/database/reports/{report['reportId']}").json()["type_id"]

        assert len(client.get(f"/database/reports/type/{type_id}").json()) == 1
        assert len(client.get(f"/database/reports/user/{site_manager.id}").json()) == 1
        assert client.get("/database/reports/type/999").status_code == 404

    def test_update_report(self, client, site_manager):
        report_id = generate(client, "employee-load", userId=site_manager.id).json()["reportId"]
        current = client.get(f"/database/reports/{report_id}").json()

        payload = {k: current[k] for k in ("type_id", "created_by_id", "parameters", "file_name", "file_path")}
        payload["name"] = "January load"
        response = client.put(f"/database/reports/{report_id}", json=payload)

        assert response.status_code == 200
        assert response.json()["name"] == "January load"

    def test_delete_report(self, client, store, site_manager):
        report_id = generate(client, "employee-load", userId=site_manager.id).json()["reportId"]

        assert client.delete(f"/database/reports/{report_id}").status_code == 204
        assert client.get(f"/database/reports/{report_id}").status_code == 404
        assert len(stored_files(store)) == 1

    def test_report_type_crud(self, client):
        response = client.post("/database/report-types", json={"name": "Safety audit"})
        assert response.status_code == 201
        type_id = response.json()["id"]

        assert client.post("/database/report-types", json={"name": "Safety audit"}).status_code == 409

        response = client.put(f"/database/report-types/{type_id}", json={"name": "Safety audit", "description": "Monthly"})
        assert response.json()["description"] == "Monthly"

        assert len(client.get("/database/report-types").json()) == len(ReportKind) + 1
        assert client.delete(f"/database/report-types/{type_id}").status_code == 204
        assert client.get(f"/database/report-types/{type_id}").status_code == 404

    def test_delete_referenced_type(self, client, site_manager):
        report_id = generate(client, "employee-load", userId=site_manager.id).json()["reportId"]
        type_id = client.get(f"/database/reports/{report_id}").json()["type_id"]

        response = client.delete(f"/database/report-types/{type_id}")
        assert response.status_code == 409
        assert response.json()["kind"] == "conflict"


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


class TestReportFileConfinement:
    def test_update_to_outside_path_rejected(self, client, site_manager, tmp_path):
        report_id = generate(client, "employee-load", userId=site_manager.id).json()["reportId"]
        current = client.get(f"/database/reports/{report_id}").json()

        outside = tmp_path / "secret.txt"
        outside.write_text("outside the storage root")
        payload = {k: current[k] for k in ("name", "type_id", "created_by_id", "parameters", "file_name")}
        payload["file_path"] = str(outside)

        response = client.put(f"/database/reports/{report_id}", json=payload)
        assert response.status_code == 400
        assert response.json()["kind"] == "validation_error"

        download = client.get(f"/api/generate-report/download/{report_id}")
        assert download.status_code == 200
        assert download.content.startswith(b"%PDF")

    def test_update_to_duplicate_file_name(self, client, site_manager):
        first = generate(client, "employee-load", userId=site_manager.id).json()["reportId"]
        second = generate(client, "employee-load", userId=site_manager.id).json()["reportId"]
        taken = client.get(f"/database/reports/{first}").json()
        current = client.get(f"/database/reports/{second}").json()

        payload = {k: current[k] for k in ("name", "type_id", "created_by_id", "parameters")}
        payload.update(file_name=taken["file_name"], file_path=taken["file_path"])

        response = client.put(f"/database/reports/{second}", json=payload)
        assert response.status_code == 409

    def test_download_of_tampered_row(self, client, db, site_manager, tmp_path):
        report_id = generate(client, "employee-load", userId=site_manager.id).json()["reportId"]
        outside = tmp_path / "secret.txt"
        outside.write_text("outside the storage root")

        report = db.get(Report, report_id)
        report.file_path = str(outside)
        db.commit()

        response = client.get(f"/api/generate-report/download/{report_id}")
        assert response.status_code == 404
        assert b"outside the storage root" not in response.content
