"""
Flask CLI commands for platform bootstrap.

Commands:
- flask init-db: Create all tables
- flask create-tenant: Create a store
- flask add-member: Grant a user a role in a store
- flask create-platform-admin: Register a platform operator
"""

import click
from sqlalchemy.exc import IntegrityError

from commerce import database
from commerce.models import MembershipRole, PlatformAdmin, PlatformRole, Tenant, TenantStatus
from commerce.services import membership_service
from commerce.services.tenant_service import normalize_slug

SLUG_CHARS = set('abcdefghijklmnopqrstuvwxyz0123456789-')


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create every table."""
        database.create_all()
        click.echo(click.style('Database tables created.', fg='green'))

    @app.cli.command('create-tenant')
    @click.option('--slug', required=True, help='URL identifier (lowercase, digits, dashes)')
    @click.option('--name', required=True, help='Display name')
    @click.option('--currency', default=None, help='ISO currency code (defaults to DEFAULT_CURRENCY)')
    @click.option('--template', default=None, help='Storefront template name')
    def create_tenant(slug, name, currency, template):
        """Create a new ACTIVE store."""
        slug = normalize_slug(slug)
        if not slug or not set(slug) <= SLUG_CHARS:
            raise click.BadParameter('slug may only contain a-z, 0-9 and dashes', param_hint='--slug')

        session = database.get_session()
        tenant = Tenant(
            slug=slug,
            name=name,
            status=TenantStatus.ACTIVE,
            template=template,
            settings={'currency': currency or app.config.get('DEFAULT_CURRENCY', 'KWD')}
        )
        try:
            session.add(tenant)
            session.commit()
        except IntegrityError:
            session.rollback()
            raise click.ClickException(f'A tenant with slug "{slug}" already exists')

        click.echo(click.style(f'Tenant created: {tenant.slug} (id {tenant.id})', fg='green'))

    @app.cli.command('add-member')
    @click.option('--tenant', 'tenant_slug', required=True, help='Tenant slug')
    @click.option('--uid', required=True, help='Identity provider user id')
    @click.option('--email', required=True, help='User email')
    @click.option('--name', 'full_name', default=None, help='Full name')
    @click.option('--role', type=click.Choice([r.value for r in MembershipRole], case_sensitive=False),
                  default=MembershipRole.STAFF.value, show_default=True)
    def add_member(tenant_slug, uid, email, full_name, role):
        """Grant a user a role in a store (creating the user if needed)."""
        session = database.get_session()
        tenant = session.query(Tenant).filter(Tenant.slug == normalize_slug(tenant_slug)).first()
        if tenant is None:
            raise click.ClickException(f'Tenant "{tenant_slug}" not found')

        try:
            user = membership_service.get_or_create_user(session, uid, email, full_name)
            membership_service.add_member(session, tenant.id, user, role)
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise click.ClickException(f'Could not add member: {e.orig}')

        click.echo(click.style(f'{email} is now {role.upper()} of {tenant.slug}', fg='green'))

    @app.cli.command('create-platform-admin')
    @click.option('--uid', required=True, help='Identity provider user id')
    @click.option('--email', required=True, help='User email')
    @click.option('--role', type=click.Choice([r.value for r in PlatformRole], case_sensitive=False),
                  default=PlatformRole.ADMIN.value, show_default=True)
    def create_platform_admin(uid, email, role):
        """Register a platform operator."""
        session = database.get_session()
        try:
            user = membership_service.get_or_create_user(session, uid, email)
            admin = session.query(PlatformAdmin).filter(PlatformAdmin.user_id == user.id).first()
            if admin is None:
                admin = PlatformAdmin(user_id=user.id)
                session.add(admin)
            admin.role = role.upper()
            admin.active = True
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise click.ClickException(f'Could not create platform admin: {e.orig}')

        click.echo(click.style(f'{email} is platform {role.upper()}', fg='green'))
