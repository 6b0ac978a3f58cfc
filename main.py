"""
Main entry point for LifeSignal.

Interactive CLI for driving check-ins, contacts, pings and alerts against
the local document store.

File: main.py
Created: 2026-10-16
Last Modified: 2026-10-18
"""

import asyncio
import sys
from dataclasses import dataclass
from typing import Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from lifesignal.alerts import AlertTrigger, ConsoleNotificationClient
from lifesignal.config import LifeSignalConfig, configure_logging
from lifesignal.contacts import ContactSyncEngine, LocalContactStore, PingHandler
from lifesignal.documents import USERS, DocumentStore, RelationshipFunctions
from lifesignal.errors import LifeSignalError, user_message
from lifesignal.liveness import COMMON_CHECK_IN_INTERVALS, format_interval, format_remaining
from lifesignal.models import ContactReference
from lifesignal.user import Session, UserService, format_phone_number

console = Console()

ACTIONS = {
    "1": {"name": "Status", "description": "Your check-in, responders and dependents"},
    "2": {"name": "Check in", "description": "Confirm you are safe"},
    "3": {"name": "Add contact", "description": "Look up a QR code and link a contact"},
    "4": {"name": "Change roles", "description": "Make a contact a responder, dependent, or both"},
    "5": {"name": "Remove contact", "description": "Delete a relationship in both directions"},
    "6": {"name": "Ping", "description": "Ask a contact to check in"},
    "7": {"name": "Respond", "description": "Answer one ping, or all of them"},
    "8": {"name": "Clear ping", "description": "Withdraw a ping you sent"},
    "9": {"name": "Manual alert", "description": "Alert your responders now, or cancel"},
    "10": {"name": "Settings", "description": "Interval, reminders, QR code, profile"},
    "u": {"name": "Switch user", "description": "Sign in as another local user"},
    "r": {"name": "Register", "description": "Create a new local user"},
}


@dataclass
class Services:
    config: LifeSignalConfig
    session: Session
    documents: DocumentStore
    functions: RelationshipFunctions
    store: LocalContactStore
    sync: ContactSyncEngine
    pings: PingHandler
    alerts: AlertTrigger
    users: UserService


async def build_services(config: LifeSignalConfig) -> Services:
    documents = await DocumentStore(config.db_path, timeout=config.request_timeout).initialize()
    functions = RelationshipFunctions(documents)
    session = Session()
    store = LocalContactStore()
    sync = ContactSyncEngine(session, documents, functions, store)
    return Services(
        config=config,
        session=session,
        documents=documents,
        functions=functions,
        store=store,
        sync=sync,
        pings=PingHandler(sync, store),
        alerts=AlertTrigger(session, documents, ConsoleNotificationClient(console), functions),
        users=UserService(session, documents, functions, config),
    )


def show_menu(services: Services):
    """Display the main menu."""
    console.print()
    signed_in = services.session.user_id or "nobody"
    console.print(
        Panel.fit(
            f"[bold cyan]LifeSignal[/] - signed in as [white]{signed_in}[/]",
            border_style="cyan",
        )
    )
    console.print()

    table = Table(box=box.ROUNDED, show_header=True, header_style="bold")
    table.add_column("Key", style="cyan", width=4)
    table.add_column("Action", style="white")
    table.add_column("Description", style="dim")
    for key, action in ACTIONS.items():
        table.add_row(key, action["name"], action["description"])

    console.print(table)
    console.print("  [cyan]q[/]  Quit")
    console.print()


def _contacts_table(title: str, contacts, show_liveness: bool) -> Table:
    table = Table(title=title, box=box.SIMPLE_HEAD, header_style="bold")
    table.add_column("#", style="cyan", width=3)
    table.add_column("Name", style="white")
    table.add_column("Phone", style="dim")
    if show_liveness:
        table.add_column("Remaining")
    table.add_column("Pings")

    for index, contact in enumerate(contacts, start=1):
        pings = []
        if contact.has_incoming_ping:
            pings.append("[yellow]received[/]")
        if contact.has_outgoing_ping:
            pings.append("[cyan]sent[/]")

        row = [str(index), contact.nickname or contact.name, format_phone_number(contact.phone) if contact.phone else "-"]
        if show_liveness:
            if contact.manual_alert_active:
                row.append("[bold red]ALERT[/]")
            elif contact.is_non_responsive():
                row.append("[red]Non-responsive[/]")
            else:
                row.append(f"[green]{contact.formatted_time_remaining()}[/]")
        row.append(", ".join(pings) or "-")
        table.add_row(*row)
    return table


async def show_status(services: Services):
    user = await services.users.load_user()
    await services.sync.load_contacts()
    await services.alerts.refresh()

    remaining = format_remaining(user.time_remaining())
    console.print(f"[bold]{user.name}[/]  {format_phone_number(user.phone_number, user.phone_region)}")
    console.print(f"[dim]QR code:[/] {user.qr_code_id}")
    console.print(f"[dim]Interval:[/] {format_interval(user.check_in_interval)}  [dim]Remaining:[/] {remaining}")
    if services.alerts.is_active:
        console.print(f"[bold red]Manual alert active since {services.alerts.timestamp:%Y-%m-%d %H:%M}[/]")

    console.print(_contacts_table("Responders", list(services.store.responders()), show_liveness=False))
    console.print(_contacts_table("Dependents", list(services.store.dependents()), show_liveness=True))
    console.print(
        f"[dim]Non-responsive dependents:[/] {services.store.non_responsive_dependents_count}  "
        f"[dim]Pending pings:[/] {services.store.pending_pings_count}"
    )


def pick_contact(services: Services, prompt: str = "Contact") -> Optional[ContactReference]:
    contacts = services.store.all()
    if not contacts:
        console.print("[yellow]You have no contacts yet.[/]")
        return None

    for index, contact in enumerate(contacts, start=1):
        console.print(f"  [cyan]{index}[/] ", contact.to_rich_text())
    choice = Prompt.ask(prompt, choices=[str(i) for i in range(1, len(contacts) + 1)] + ["c"], default="c")
    if choice == "c":
        return None
    return contacts[int(choice) - 1]


def ask_roles() -> Optional[tuple]:
    is_responder = Confirm.ask("Responder (notified if you stop checking in)?", default=True)
    is_dependent = Confirm.ask("Dependent (you watch their check-ins)?", default=False)
    if not is_responder and not is_dependent:
        console.print("[red]Pick at least one role.[/]")
        return None
    return is_responder, is_dependent


async def add_contact(services: Services):
    qr_code = Prompt.ask("QR code ID")
    summary = await services.sync.lookup_user_by_qr_code(qr_code)
    console.print(f"Found [bold]{summary.name}[/] {summary.phone}")
    if summary.note:
        console.print(f"[dim]{summary.note}[/]")

    roles = ask_roles()
    if roles is None:
        return
    outcome = await services.sync.add_contact(qr_code, *roles)
    style = "yellow" if outcome.already_existed else "green"
    console.print(f"[{style}]{outcome.message}[/]")


async def change_roles(services: Services):
    await services.sync.load_contacts()
    contact = pick_contact(services)
    if contact is None:
        return
    roles = ask_roles()
    if roles is None:
        return
    await services.sync.update_contact_role(contact, *roles)
    console.print("[green]Roles updated.[/]")


async def remove_contact(services: Services):
    await services.sync.load_contacts()
    contact = pick_contact(services)
    if contact is None:
        return
    if not Confirm.ask(f"Remove {contact.name}?", default=False):
        console.print("[dim]Skipped.[/]")
        return
    await services.sync.remove_contact(contact)
    console.print("[green]Contact removed.[/]")


async def ping(services: Services):
    await services.sync.load_contacts()
    contact = pick_contact(services, "Ping whom")
    if contact is None:
        return
    await services.pings.send_ping(contact)
    console.print(f"[green]Ping sent to {contact.name}.[/]")


async def respond(services: Services):
    await services.sync.load_contacts()
    if services.store.pending_pings_count == 0:
        console.print("[dim]No pending pings.[/]")
        return

    if Confirm.ask(f"Respond to all {services.store.pending_pings_count} pings?", default=True):
        cleared = await services.pings.respond_to_all_pings()
        console.print(f"[green]Responded to {cleared} pings.[/]")
        return

    contact = pick_contact(services, "Respond to")
    if contact is not None:
        await services.pings.respond_to_ping(contact)
        console.print(f"[green]Responded to {contact.name}.[/]")


async def clear_ping(services: Services):
    await services.sync.load_contacts()
    contact = pick_contact(services, "Clear ping to")
    if contact is None:
        return
    await services.pings.clear_outgoing_ping(contact)
    console.print("[green]Ping cleared.[/]")


async def toggle_alert(services: Services):
    active = await services.alerts.refresh()
    if active:
        if Confirm.ask("Cancel your manual alert?", default=True):
            await services.alerts.set_alert(False)
        return
    if Confirm.ask("[bold red]Send a manual alert to all your responders?[/]", default=False):
        await services.alerts.set_alert(True)


async def settings(services: Services):
    choice = Prompt.ask(
        "Setting",
        choices=["interval", "reminder", "qr", "profile", "c"],
        default="c",
    )
    if choice == "interval":
        hours = Prompt.ask("Hours", choices=[str(h) for h in COMMON_CHECK_IN_INTERVALS], default="24")
        interval = await services.users.set_check_in_interval(int(hours) * 3600)
        console.print(f"[green]Interval set to {format_interval(interval)}.[/]")
    elif choice == "reminder":
        minutes = Prompt.ask("Remind me before expiry (minutes)", choices=["30", "120"], default="30")
        await services.users.set_notification_lead_time(int(minutes))
        console.print("[green]Reminder updated.[/]")
    elif choice == "qr":
        if Confirm.ask("Generate a new QR code? The old one will stop working.", default=False):
            qr_code_id = await services.users.regenerate_qr_code()
            console.print(f"[green]New QR code:[/] {qr_code_id}")
    elif choice == "profile":
        user = await services.users.load_user()
        name = Prompt.ask("Name", default=user.name)
        note = Prompt.ask("Emergency note", default=user.note)
        await services.users.update_profile(name=name, note=note)
        console.print("[green]Profile updated.[/]")


async def register(services: Services):
    name = Prompt.ask("Name")
    phone = Prompt.ask("Phone number")
    note = Prompt.ask("Emergency note (optional)", default="")
    services.session.sign_out()
    user = await services.users.create_user(name, phone, note)
    console.print(f"[green]Registered {user.name}.[/] Share your QR code ID: [bold]{user.qr_code_id}[/]")
    await services.sync.load_contacts()


async def switch_user(services: Services, user_id: Optional[str] = None):
    if user_id is None:
        users = await services.documents.list_collection(USERS)
        if not users:
            console.print("[yellow]No local users yet. Register one first.[/]")
            return
        for index, (doc_id, data) in enumerate(users, start=1):
            console.print(f"  [cyan]{index}[/] {data.get('name') or 'Unknown User'} [dim]({doc_id})[/]")
        choice = Prompt.ask("User", choices=[str(i) for i in range(1, len(users) + 1)])
        user_id = users[int(choice) - 1][0]

    services.session.sign_in(user_id)
    await services.sync.load_contacts()
    await services.alerts.refresh()


async def run_action(services: Services, action: str):
    if action == "r":
        await register(services)
        return
    if action == "u":
        await switch_user(services)
        return
    if not services.session.is_authenticated:
        console.print("[yellow]Register or switch to a user first.[/]")
        return

    if action == "1":
        await show_status(services)
    elif action == "2":
        expires = await services.users.check_in()
        console.print(f"[green]Checked in.[/] Next check-in due {expires:%Y-%m-%d %H:%M} UTC")
    elif action == "3":
        await add_contact(services)
    elif action == "4":
        await change_roles(services)
    elif action == "5":
        await remove_contact(services)
    elif action == "6":
        await ping(services)
    elif action == "7":
        await respond(services)
    elif action == "8":
        await clear_ping(services)
    elif action == "9":
        await toggle_alert(services)
    elif action == "10":
        await settings(services)


async def main():
    """Main entry point with interactive menu."""
    config = LifeSignalConfig.from_env()
    configure_logging(config)
    services = await build_services(config)

    # Check for command-line argument for non-interactive use
    if len(sys.argv) > 1:
        command = sys.argv[1].lower()
        if command == "status" and len(sys.argv) > 2:
            try:
                await switch_user(services, sys.argv[2])
                await show_status(services)
            except LifeSignalError as e:
                console.print(f"[red]{user_message(e)}[/]")
            return
        console.print(f"[red]Unknown command: {' '.join(sys.argv[1:])}[/]")
        console.print("[dim]Usage: python main.py status <user_id>[/]")
        return

    # Interactive mode
    while True:
        show_menu(services)

        choice = Prompt.ask(
            "Select action",
            choices=list(ACTIONS.keys()) + ["q"],
            default="q",
        )
        if choice == "q":
            console.print("[dim]Goodbye![/]")
            break

        try:
            await run_action(services, choice)
        except LifeSignalError as e:
            style = "yellow" if e.is_informational else "red"
            console.print(f"[{style}]{user_message(e)}[/]")

        console.print()
        if not Confirm.ask("Continue?", default=True):
            console.print("[dim]Goodbye![/]")
            break


if __name__ == "__main__":
    asyncio.run(main())
