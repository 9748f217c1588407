import io
from types import SimpleNamespace
from urllib.parse import quote

import openpyxl

from models import db
from models.audit_log import AuditLog
from information import services
from information.models import InformationRow

MARKSHEET = {
    "title": "Marksheet",
    "columns": ["Name", "Marks"],
    "rows": [{"Name": "A", "Marks": "80"}],
    "permissionMode": "edit-with-proof",
}


def _create(client, headers, payload=None):
    res = client.post("/api/tables", json=payload or MARKSHEET, headers=headers)
    assert res.status_code == 201, res.get_json()
    return res.get_json()["data"]


def _rows(client, headers, table_id):
    res = client.get(f"/api/tables/{table_id}/rows", headers=headers)
    assert res.status_code == 200
    return res.get_json()["data"]["rows"]


def test_requires_token(client):
    res = client.get("/api/tables")
    assert res.status_code == 401
    assert res.get_json()["success"] is False


def test_rejects_bad_token(client):
    res = client.get("/api/tables", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


def test_marksheet_proof_workflow(client, admin_headers, student_headers):
    table = _create(client, admin_headers)
    assert table["permissionMode"] == "edit-with-proof"
    row = _rows(client, student_headers, table["id"])[0]

    res = client.put(
        f"/api/tables/{table['id']}/rows/{row['id']}",
        json={"data": {"Marks": "85"}, "proofImages": ["https://cdn.example/proof.png"]},
        headers=student_headers,
    )
    assert res.status_code == 201
    body = res.get_json()["data"]
    assert body["requiresApproval"] is True
    request_id = body["changeRequest"]["id"]

    pending = client.get("/api/change-requests?status=pending", headers=admin_headers).get_json()["data"]
    assert [cr["id"] for cr in pending] == [request_id]
    assert pending[0]["currentData"] == {"Name": "A", "Marks": "80"}
    assert _rows(client, student_headers, table["id"])[0]["data"]["Marks"] == "80"

    res = client.post(f"/api/change-requests/{request_id}/approve", json={"reviewNotes": "ok"},
                      headers=admin_headers)
    assert res.status_code == 200
    assert res.get_json()["data"]["status"] == "approved"
    assert _rows(client, student_headers, table["id"])[0]["data"]["Marks"] == "85"

    res = client.post(f"/api/change-requests/{request_id}/reject", headers=admin_headers)
    assert res.status_code == 409


def test_view_only_edit_forbidden(client, admin_headers, student_headers):
    table = _create(client, admin_headers, {**MARKSHEET, "permissionMode": "view-only"})
    row = _rows(client, student_headers, table["id"])[0]

    res = client.put(f"/api/tables/{table['id']}/rows/{row['id']}", json={"data": {"Marks": "99"}},
                     headers=student_headers)
    assert res.status_code == 403
    assert _rows(client, student_headers, table["id"])[0]["data"]["Marks"] == "80"


def test_editable_edit_applies(client, admin_headers, student_headers, student_user):
    table = _create(client, admin_headers, {**MARKSHEET, "permissionMode": "editable"})
    row = _rows(client, student_headers, table["id"])[0]

    res = client.put(f"/api/tables/{table['id']}/rows/{row['id']}",
                     json={"data": {"Name": "A", "Marks": "90"}}, headers=student_headers)
    assert res.status_code == 200
    data = res.get_json()["data"]
    assert data["requiresApproval"] is False
    assert data["row"]["data"] == {"Name": "A", "Marks": "90"}
    assert data["row"]["lastEditedBy"] == {"id": student_user.id, "name": "Student One"}


def test_proof_missing_is_bad_request(client, admin_headers, student_headers):
    table = _create(client, admin_headers)
    row = _rows(client, student_headers, table["id"])[0]
    res = client.put(f"/api/tables/{table['id']}/rows/{row['id']}", json={"data": {"Marks": "85"}},
                     headers=student_headers)
    assert res.status_code == 400
    assert res.get_json()["message"] == "Proof images are required"


def test_edit_requires_data(client, admin_headers, student_headers):
    table = _create(client, admin_headers)
    row = _rows(client, student_headers, table["id"])[0]
    res = client.put(f"/api/tables/{table['id']}/rows/{row['id']}", json={}, headers=student_headers)
    assert res.status_code == 400


def test_student_cannot_create(client, student_headers):
    res = client.post("/api/tables", json=MARKSHEET, headers=student_headers)
    assert res.status_code == 403


def test_create_validation_errors(client, admin_headers):
    res = client.post("/api/tables", json={"title": "T", "columns": ["A", "A"], "rows": [{"A": "1"}]},
                      headers=admin_headers)
    assert res.status_code == 400
    assert res.get_json()["message"] == "Duplicate column names found"

    res = client.post("/api/tables", json={"title": "T"}, headers=admin_headers)
    assert res.status_code == 400


def test_unknown_table(client, student_headers):
    assert client.get("/api/tables/999/rows", headers=student_headers).status_code == 404


def test_listing_hides_inactive_from_students(client, admin_headers, student_headers):
    table = _create(client, admin_headers)
    res = client.put(f"/api/tables/{table['id']}", json={"active": False}, headers=admin_headers)
    assert res.status_code == 200
    assert res.get_json()["data"]["active"] is False

    assert client.get("/api/tables", headers=student_headers).get_json()["data"] == []
    admin_view = client.get("/api/tables", headers=admin_headers).get_json()["data"]
    assert [t["id"] for t in admin_view] == [table["id"]]
    assert admin_view[0]["creator"]["email"] == "admin@mca.edu"
    assert client.get(f"/api/tables/{table['id']}/rows", headers=student_headers).status_code == 404


def test_update_rejects_unknown_fields(client, admin_headers):
    table = _create(client, admin_headers)
    res = client.put(f"/api/tables/{table['id']}", json={"columns": ["X"]}, headers=admin_headers)
    assert res.status_code == 400


def test_update_is_audited_with_diff(client, admin_headers):
    table = _create(client, admin_headers)
    client.put(f"/api/tables/{table['id']}", json={"permissionMode": "editable"}, headers=admin_headers)

    log = AuditLog.query.filter_by(action="INFORMATION_UPDATED").one()
    assert log.meta == {"changes": {"permission_mode": {"from": "edit-with-proof", "to": "editable"}}}


def test_admin_overwrite(client, admin_headers, student_headers):
    table = _create(client, admin_headers, {**MARKSHEET, "permissionMode": "view-only"})
    row = _rows(client, admin_headers, table["id"])[0]

    res = client.patch(f"/api/tables/{table['id']}/rows/{row['id']}",
                       json={"data": {"Name": "A", "Marks": "100"}}, headers=admin_headers)
    assert res.status_code == 200
    assert res.get_json()["data"]["data"]["Marks"] == "100"

    res = client.patch(f"/api/tables/{table['id']}/rows/{row['id']}",
                       json={"data": {"Marks": "0"}}, headers=student_headers)
    assert res.status_code == 403


def test_delete_row(client, admin_headers):
    table = _create(client, admin_headers, {**MARKSHEET, "rows": [{"Name": "A"}, {"Name": "B"}]})
    first, second = _rows(client, admin_headers, table["id"])

    res = client.delete(f"/api/tables/{table['id']}/rows", headers=admin_headers)
    assert res.status_code == 400
    assert res.get_json()["message"] == "Row ID is required"

    res = client.delete(f"/api/tables/{table['id']}/rows?rowId={first['id']}", headers=admin_headers)
    assert res.status_code == 200
    assert [r["id"] for r in _rows(client, admin_headers, table["id"])] == [second["id"]]

    res = client.delete(f"/api/tables/{table['id']}/rows?rowId={first['id']}", headers=admin_headers)
    assert res.status_code == 404


def test_delete_table(client, admin_headers):
    table = _create(client, admin_headers)
    res = client.delete(f"/api/tables/{table['id']}", headers=admin_headers)
    assert res.status_code == 200
    assert res.get_json()["data"]["rows_deleted"] == 1
    assert client.get(f"/api/tables/{table['id']}/rows", headers=admin_headers).status_code == 404
    assert AuditLog.query.filter_by(action="INFORMATION_DELETED").one().level == "WARN"


def test_export_csv(client, admin_headers, student_headers):
    table = _create(client, admin_headers, {
        "title": "Export Me", "columns": ["A", "B"], "rows": [{"A": "1,2", "B": "x"}],
    })
    res = client.get(f"/api/tables/{table['id']}/export", headers=student_headers)
    assert res.status_code == 200
    assert res.headers["Content-Type"] == "text/csv; charset=utf-8"
    assert res.headers["Content-Disposition"] == 'attachment; filename="Export_Me.csv"'
    assert res.get_data(as_text=True) == 'A,B\n"1,2",x'


def test_import_csv(client, admin_headers):
    payload = {
        "file": (io.BytesIO(b'Name,Marks\nA,80\n"B, Jr",75\n'), "sem1.csv"),
        "permissionMode": "editable",
    }
    res = client.post("/api/tables/import", data=payload, headers=admin_headers,
                      content_type="multipart/form-data")
    assert res.status_code == 201
    table = res.get_json()["data"]
    assert table["title"] == "sem1"
    assert table["columns"] == ["Name", "Marks"]
    assert table["permissionMode"] == "editable"
    assert [r["data"]["Name"] for r in _rows(client, admin_headers, table["id"])] == ["A", "B, Jr"]


def test_import_xlsx(client, admin_headers):
    wb = openpyxl.Workbook()
    wb.active.append(["Roll", "Grade"])
    wb.active.append([1, "A"])
    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)

    res = client.post("/api/tables/import", data={"file": (buf, "grades.xlsx"), "title": "Grades"},
                      headers=admin_headers, content_type="multipart/form-data")
    assert res.status_code == 201
    assert res.get_json()["data"]["title"] == "Grades"


def test_import_errors(client, admin_headers):
    res = client.post("/api/tables/import", data={}, headers=admin_headers, content_type="multipart/form-data")
    assert res.status_code == 400
    assert res.get_json()["message"] == "No file uploaded"

    res = client.post("/api/tables/import", data={"file": (io.BytesIO(b"A,B\n"), "empty.csv")},
                      headers=admin_headers, content_type="multipart/form-data")
    assert res.status_code == 400
    assert res.get_json()["message"] == "No data rows found in CSV"

    res = client.post("/api/tables/import", data={"file": (io.BytesIO(b"x"), "notes.txt")},
                      headers=admin_headers, content_type="multipart/form-data")
    assert res.status_code == 400


def test_request_id_is_echoed(client, student_headers):
    res = client.get("/api/tables", headers={**student_headers, "X-Request-ID": "req-123"})
    assert res.headers["X-Request-ID"] == "req-123"


def test_export_unicode_title(client, admin_headers):
    table = _create(client, admin_headers, {"title": "मार्कशीट", "columns": ["A"], "rows": [{"A": "1"}]})
    res = client.get(f"/api/tables/{table['id']}/export", headers=admin_headers)
    assert res.status_code == 200
    assert res.headers["Content-Disposition"] == (
        "attachment; filename=\"export.csv\"; filename*=UTF-8''" + quote("मार्कशीट.csv", safe="")
    )


def test_edit_of_row_deleted_meanwhile_is_not_found(client, admin_headers, student_headers, monkeypatch):
    table = _create(client, admin_headers, {**MARKSHEET, "permissionMode": "editable"})
    row = _rows(client, student_headers, table["id"])[0]
    lookup = services._get_row

    def get_then_delete(info, row_id):
        found = lookup(info, row_id).id
        InformationRow.query.filter_by(id=found).delete(synchronize_session=False)
        db.session.commit()
        return SimpleNamespace(id=found)

    monkeypatch.setattr(services, "_get_row", get_then_delete)
    res = client.put(f"/api/tables/{table['id']}/rows/{row['id']}", json={"data": {"Marks": "90"}},
                     headers=student_headers)
    assert res.status_code == 404
    assert res.get_json()["message"] == "Row not found"
