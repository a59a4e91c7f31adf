"""
Flask CLI commands.

Commands:
- flask init-db: Create the database tables
- flask send-digest: Send the daily expiry digest to every company
"""

from datetime import date

import click
from flask import current_app
from segvenc.database import create_schema, get_session
from segvenc.services.digest_service import run_daily_digest


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table known to the models."""
        create_schema()
        click.echo(click.style('✅ Tabelas criadas.', fg='green'))

    @app.cli.command('send-digest')
    @click.option('--today', default=None, help='Reference date (YYYY-MM-DD), defaults to today')
    def send_digest(today):
        """Send the daily expiry digest (run it from cron)."""
        reference = None
        if today:
            try:
                reference = date.fromisoformat(today)
            except ValueError:
                click.echo(click.style(f'❌ Data inválida: {today}', fg='red'))
                raise SystemExit(1)

        result = run_daily_digest(get_session(), current_app.config, today=reference)

        click.echo(click.style('\n✅ Resumo diário processado', fg='green', bold=True))
        click.echo(f'   Itens: {result.total_items}')
        click.echo(f'   Empresas com itens: {result.tenants_with_items}')
        click.echo(f'   E-mails enviados: {result.emails_sent}')
        if result.tenants_without_email:
            click.echo(click.style(f'   Empresas sem e-mail: {result.tenants_without_email}', fg='yellow'))
        if result.tenants_skipped:
            click.echo(click.style(f'   Envio desativado (não enviados): {result.tenants_skipped}', fg='yellow'))
        if result.tenants_failed:
            click.echo(click.style(f'   Falhas de envio: {result.tenants_failed}', fg='red'))
            raise SystemExit(1)
