"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables and seed the default operation flow
- flask seed-flow: Insert missing operation steps (--reset restores defaults)
- flask reset-driver-counters: Zero the drivers' daily completion counters
"""

import click
from datetime import date
from app.database import db_session, create_all
from app.models import Driver
from app.services.operations_service import seed_operation_steps


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create tables and seed the default operation flow."""
        create_all()
        inserted = seed_operation_steps(db_session)
        click.echo(click.style(f'✅ Tablas creadas; {inserted} pasos de operación agregados', fg='green'))

    @app.cli.command('seed-flow')
    @click.option('--reset', is_flag=True, help='Restore the default flow over existing steps')
    def seed_flow(reset):
        """Insert the default operation steps."""
        touched = seed_operation_steps(db_session, reset=reset)
        click.echo(f'Pasos de operación actualizados: {touched}')

    @app.cli.command('reset-driver-counters')
    def reset_driver_counters():
        """Start a new day: completed_today = 0 for every driver."""
        try:
            count = (
                db_session.query(Driver)
                .update({Driver.completed_today: 0, Driver.counters_date: date.today()},
                        synchronize_session=False)
            )
            db_session.commit()
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'❌ Error al reiniciar contadores: {str(e)}', fg='red'))
            raise click.Abort()
        click.echo(click.style(f'✅ Contadores reiniciados para {count} repartidores', fg='green'))
