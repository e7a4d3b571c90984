"""
Flask CLI commands.

Commands:
- flask init-db: Create all tables
- flask create-user: Create a company together with its first user
"""

import click

from invoicing.database import create_all, get_session
from invoicing.exceptions import ValidationRejected
from invoicing.services.auth_service import signup


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table that does not exist yet."""
        create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('create-user')
    @click.option('--company', 'company_name', prompt='Company name', help='Company (tenant) name')
    @click.option('--first-name', prompt=True, help='First name of the user')
    @click.option('--last-name', default='', help='Last name of the user')
    @click.option('--email', prompt=True, help='Login email address')
    @click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Login password')
    def create_user(company_name, first_name, last_name, email, password):
        """Create a company and its owner user."""
        try:
            company, user = signup({
                'companyName': company_name,
                'firstName': first_name,
                'lastName': last_name,
                'email': email,
                'password': password,
            }, get_session())
        except ValidationRejected as e:
            for message in (e.errors or {'': e.message}).values():
                click.echo(click.style(f'Error: {message}', fg='red'))
            raise SystemExit(1)

        click.echo(click.style('User created.', fg='green', bold=True))
        click.echo(f'   Company: {company.name} (ID {company.id})')
        click.echo(f'   Email:   {user.email} (ID {user.id})')
