"""Roster management CLI (rosterctl)."""

import typer
from sqlalchemy.engine import make_url

app = typer.Typer(name="rosterctl", help="Roster API management CLI")
db_app = typer.Typer(help="Database management commands")
app.add_typer(db_app, name="db")


@db_app.command("create")
def db_create():
    """Create the MySQL database if it doesn't exist."""
    import pymysql
    from roster.core.config import settings

    url = make_url(settings.DATABASE_URL)
    if not url.drivername.startswith("mysql"):
        typer.echo(f"Nothing to create for {url.drivername}")
        return

    conn = pymysql.connect(
        host=url.host or "localhost",
        port=url.port or 3306,
        user=url.username,
        password=url.password or "",
    )
    try:
        cursor = conn.cursor()
        cursor.execute(
            f"CREATE DATABASE IF NOT EXISTS `{url.database}` "
            "CHARACTER SET utf8mb4 COLLATE utf8mb4_unicode_ci"
        )
        conn.commit()
        typer.echo(f"Database '{url.database}' created (or already exists)")
    finally:
        conn.close()


@db_app.command("init")
def db_init():
    """Create all tables."""
    from roster.db.session import init_db

    init_db()
    typer.echo("Tables created")


@db_app.command("seed")
def db_seed():
    """Seed default permissions, roles and the admin account."""
    from roster.db.session import SessionLocal
    from roster.db.seeds.seed_roles import seed_roles
    from roster.db.seeds.seed_admin import seed_admin

    db = SessionLocal()
    try:
        seed_roles(db)
        created = seed_admin(db)
    finally:
        db.close()
    typer.echo("Seeds applied" + (" (admin created)" if created else ""))


@db_app.command("reset")
def db_reset():
    """Drop and recreate every table (DANGER)."""
    confirm = typer.confirm("This will DROP all roster tables. Continue?")
    if not confirm:
        raise typer.Abort()
    import roster.models  # noqa: F401
    from roster.db.base import Base
    from roster.db.session import engine

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    typer.echo("Tables reset")


@app.command("serve")
def serve(
    host: str = typer.Option("0.0.0.0", help="Host"),
    port: int = typer.Option(8000, help="Port"),
    reload: bool = typer.Option(False, help="Auto-reload"),
):
    """Start the API server."""
    import uvicorn
    uvicorn.run("roster.main:app", host=host, port=port, reload=reload)


if __name__ == "__main__":
    app()
