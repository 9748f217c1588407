from models import db, utcnow

# -----------------------------
# Permission modes
# -----------------------------
VIEW_ONLY = "view-only"
EDITABLE = "editable"
EDIT_WITH_PROOF = "edit-with-proof"
PERMISSION_MODES = (VIEW_ONLY, EDITABLE, EDIT_WITH_PROOF)

# -----------------------------
# Change request statuses
# -----------------------------
PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
REQUEST_STATUSES = (PENDING, APPROVED, REJECTED)


class Information(db.Model):
    __tablename__ = 'information'

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    columns = db.Column(db.JSON, nullable=False)  # ordered column names, CSV order
    permission_mode = db.Column(db.String(20), nullable=False, default=VIEW_ONLY)
    active = db.Column(db.Boolean, nullable=False, default=True)
    created_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete="SET NULL"), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    creator = db.relationship('User', lazy=True)
    rows = db.relationship(
        'InformationRow', backref='information', lazy=True,
        order_by='InformationRow.id', cascade="all, delete-orphan",
    )

    def to_dict(self, with_creator=False):
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "columns": list(self.columns or []),
            "permissionMode": self.permission_mode,
            "active": self.active,
            "createdBy": self.created_by,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
            "updatedAt": self.updated_at.isoformat() if self.updated_at else None,
        }
        if with_creator:
            data["creator"] = (
                {"id": self.creator.id, "name": self.creator.name, "email": self.creator.email}
                if self.creator else None
            )
        return data


class InformationRow(db.Model):
    __tablename__ = 'information_rows'

    id = db.Column(db.Integer, primary_key=True)
    information_id = db.Column(
        db.Integer, db.ForeignKey('information.id', ondelete="CASCADE"), nullable=False, index=True
    )
    data = db.Column(db.JSON, nullable=False)
    last_edited_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete="SET NULL"), nullable=True)
    last_edited_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    editor = db.relationship('User', lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "informationId": self.information_id,
            "data": dict(self.data or {}),
            "lastEditedBy": (
                {"id": self.editor.id, "name": self.editor.name} if self.editor else None
            ),
            "lastEditedAt": self.last_edited_at.isoformat() if self.last_edited_at else None,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }


class ChangeRequest(db.Model):
    __tablename__ = 'change_requests'

    id = db.Column(db.Integer, primary_key=True)
    # Both references survive deletion of the table/row as NULL: requests are the audit trail
    information_id = db.Column(
        db.Integer, db.ForeignKey('information.id', ondelete="SET NULL"), nullable=True, index=True
    )
    row_id = db.Column(
        db.Integer, db.ForeignKey('information_rows.id', ondelete="SET NULL"), nullable=True, index=True
    )
    information_title = db.Column(db.String(200), nullable=True)

    proposed_changes = db.Column(db.JSON, nullable=False)
    proof_images = db.Column(db.JSON, nullable=False, default=list)

    requested_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=PENDING, index=True)
    reviewed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    review_notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    information = db.relationship('Information', lazy=True)
    row = db.relationship('InformationRow', lazy=True)
    requester = db.relationship('User', foreign_keys=[requested_by], lazy=True)
    reviewer = db.relationship('User', foreign_keys=[reviewed_by], lazy=True)

    def to_dict(self, populate=False):
        data = {
            "id": self.id,
            "informationId": self.information_id,
            "informationTitle": self.information_title,
            "rowId": self.row_id,
            "proposedChanges": dict(self.proposed_changes or {}),
            "proofImages": list(self.proof_images or []),
            "requestedBy": self.requested_by,
            "status": self.status,
            "reviewedBy": self.reviewed_by,
            "reviewedAt": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "reviewNotes": self.review_notes,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }
        if populate:
            data["currentData"] = dict(self.row.data or {}) if self.row else None
            data["requester"] = (
                {"id": self.requester.id, "name": self.requester.name, "email": self.requester.email}
                if self.requester else None
            )
        return data
