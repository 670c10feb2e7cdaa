import time

import click
from tabulate import tabulate

from .config import load_settings
from .dashboard import Dashboard
from .exceptions import MailsbeError
from .logging import setup_logging, get_logger
from .models import parse_email_id
from .pixel import PixelTracker
from .stores import create_store

logger = get_logger(__name__)


def _fmt(value) -> str:
    return value.strftime('%Y-%m-%d %H:%M') if value else '-'


def _dashboard(ctx) -> Dashboard:
    """Build the store and dashboard on first use; the store closes with the context."""
    if 'dashboard' not in ctx.obj:
        settings = ctx.obj['settings']
        store = create_store(settings)
        ctx.call_on_close(store.close)
        ctx.obj['dashboard'] = Dashboard(
            store,
            endpoint_base_url=settings.endpoint_base_url,
            poll_interval=settings.poll_interval,
        )
    return ctx.obj['dashboard']


@click.group()
@click.option('--config', 'config_file', default=None, help='Path to a YAML or JSON config file')
@click.pass_context
def cli(ctx, config_file):
    """Mailsbe email open tracking."""
    ctx.ensure_object(dict)
    try:
        settings = load_settings(config_file=config_file)
    except MailsbeError as e:
        raise click.ClickException(e.message)
    setup_logging(settings=settings)
    ctx.obj['settings'] = settings
    logger.debug("Using %s backend", settings.backend)


owner_option = click.option(
    '--owner', required=True, envvar='MAILSBE_OWNER', help='User id owning the emails'
)


@cli.command('create')
@owner_option
@click.option('--email', 'recipient', required=True, help='Recipient email address')
@click.option('--description', default='', help='Label to tell tracked emails apart')
@click.pass_context
def create_email(ctx, owner, recipient, description):
    """Register an email and print the pixel to embed."""
    try:
        created = _dashboard(ctx).create_email(owner, recipient, description)
    except MailsbeError as e:
        raise click.ClickException(e.message)

    click.echo(f"Tracked email created with ID: {created.record.id}")
    click.echo(f"Tracking token: {created.record.tracking_token}")
    click.echo(f"Pixel URL: {created.pixel_url}")
    click.echo("Paste into the email body:")
    click.echo(created.snippet)


@cli.command('list')
@owner_option
@click.pass_context
def list_emails(ctx, owner):
    """List tracked emails, newest first."""
    try:
        emails = _dashboard(ctx).list_emails(owner)
    except MailsbeError as e:
        raise click.ClickException(e.message)

    if not emails:
        click.echo("No emails tracked yet.")
        return

    table_data = [
        [
            email.id,
            email.recipient_address,
            email.description,
            'yes' if email.seen else 'no',
            _fmt(email.seen_at),
            _fmt(email.created_at),
        ]
        for email in emails
    ]
    headers = ['ID', 'Email', 'Description', 'Seen', 'Seen At', 'Created']
    click.echo(tabulate(table_data, headers=headers, tablefmt='grid'))


@cli.command('show')
@owner_option
@click.argument('email_id')
@click.pass_context
def show_email(ctx, owner, email_id):
    """Show one tracked email with its pixel URL."""
    try:
        dashboard = _dashboard(ctx)
        email = dashboard.get_email(owner, parse_email_id(email_id))
    except MailsbeError as e:
        raise click.ClickException(e.message)

    click.echo(f"\n=== Email {email.id}: {email.recipient_address} ===")
    click.echo(f"Description: {email.description or '-'}")
    click.echo(f"Created: {_fmt(email.created_at)}")
    click.echo(f"Seen: {'yes, at ' + _fmt(email.seen_at) if email.seen else 'no'}")
    click.echo(f"Pixel URL: {dashboard.pixel_url(email.tracking_token)}")
    click.echo(f"Snippet: {dashboard.snippet(email.tracking_token)}")


@cli.command('delete')
@owner_option
@click.argument('email_id')
@click.confirmation_option(prompt='Are you sure you want to delete this tracked email?')
@click.pass_context
def delete_email(ctx, owner, email_id):
    """Delete a tracked email."""
    try:
        _dashboard(ctx).delete_email(owner, parse_email_id(email_id))
    except MailsbeError as e:
        raise click.ClickException(e.message)
    click.echo(f"Email {email_id} deleted.")


@cli.command('open')
@click.argument('token')
@click.pass_context
def record_open(ctx, token):
    """Record an open for TOKEN as the pixel endpoint would."""
    try:
        tracker = PixelTracker(_dashboard(ctx).store)
    except MailsbeError as e:
        raise click.ClickException(e.message)
    outcome = tracker.record_open(token)
    click.echo(f"Outcome: {outcome.value}")


@cli.command('watch')
@owner_option
@click.option('--interval', type=float, default=None, help='Seconds between polls')
@click.pass_context
def watch(ctx, owner, interval):
    """Print changes to tracked emails as they happen (Ctrl-C to stop)."""
    try:
        dashboard = _dashboard(ctx)
    except MailsbeError as e:
        raise click.ClickException(e.message)
    if interval is not None:
        dashboard.poll_interval = interval

    def show(event):
        record = event.record
        click.echo(
            f"[{event.kind.value}] #{record.id} {record.recipient_address} "
            f"seen={'yes' if record.seen else 'no'} {_fmt(record.seen_at)}"
        )

    try:
        # Other processes write to the store, so always poll
        subscription = dashboard.subscribe(owner, show, poll=True)
    except MailsbeError as e:
        raise click.ClickException(e.message)

    click.echo(f"Watching emails for {owner}...")
    with subscription:
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            click.echo("Stopped.")


@cli.command('serve')
@click.option('--host', default=None, help='Bind address')
@click.option('--port', type=int, default=None, help='Bind port')
@click.pass_context
def serve(ctx, host, port):
    """Run the pixel endpoint and dashboard server."""
    from .server import run

    settings = ctx.obj['settings']
    updates = {k: v for k, v in {'host': host, 'port': port}.items() if v is not None}
    run(settings.model_copy(update=updates))


def main():
    cli(obj={})


if __name__ == '__main__':
    main()
