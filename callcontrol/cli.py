from datetime import datetime
from typing import Optional

import typer
from sqlalchemy.orm import Session
from callcontrol.core.database import SessionLocal
from callcontrol.core.logging import setup_logging
from callcontrol.core.security import hash_password
from callcontrol.models import Organization, TelfinConnection, User
from callcontrol.services.telfin_auth import TelfinTokenManager
from callcontrol.services.telfin_client import TelfinClient
from callcontrol.services.telfin_materializer import CallRecordMaterializer
from callcontrol.services.telfin_sync import sync_call_history

app = typer.Typer()


@app.command()
def create_admin(organization: str = "Default", username: str = "admin", password: str = "admin"):
    db: Session = SessionLocal()
    try:
        existing = db.query(User).filter(User.username == username).first()
        if existing:
            typer.echo("Admin already exists")
            return
        org = db.query(Organization).filter(Organization.name == organization).first()
        if not org:
            org = Organization(name=organization)
            db.add(org)
            db.flush()
        user = User(
            org_id=org.id,
            username=username,
            name=username,
            hashed_password=hash_password(password),
            role="admin",
        )
        db.add(user)
        db.commit()
        typer.echo(f"Admin created in organization {org.id}")
    finally:
        db.close()


@app.command()
def sync_telfin(
    org_id: int,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    materialize: bool = True,
):
    """Fetch Telfin call history and materialize recorded calls in-process."""
    setup_logging()
    db: Session = SessionLocal()
    try:
        connection = db.query(TelfinConnection).filter(TelfinConnection.org_id == org_id).first()
        if not connection:
            typer.echo("Telfin connection not configured")
            raise typer.Exit(code=1)
        client = TelfinClient(TelfinTokenManager(db, connection))
        result = sync_call_history(db, connection, date_from, date_to, client=client)
        typer.echo(f"Fetched {result.fetched}, saved {result.saved}")
        if materialize:
            summary = CallRecordMaterializer(db, client).materialize_pending(org_id)
            typer.echo(
                f"Materialized {summary.completed}, skipped {summary.skipped}, failed {summary.failed}"
            )
    finally:
        db.close()


if __name__ == "__main__":
    app()
