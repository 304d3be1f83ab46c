"""Preview and mention commands."""

import click
from rich.markup import escape
from rich.table import Table

from . import cli
from .shared import console


@cli.command()
@click.argument("text")
@click.option("--allow", "allow", multiple=True, help="Allowed tag name (repeatable; replaces the configured list)")
@click.pass_obj
def preview(settings, text, allow):
    """Show how TEXT is parsed, which mentions it carries and its wire form."""
    from kether.communication import MessagePreprocessor, TagNode, TagParser

    parser = TagParser(allow or settings.allowed_tags)
    message, wire_text = MessagePreprocessor(parser).prepare_outbound(text)

    table = Table(title="Segments", padding=(0, 2))
    table.add_column("#", style="dim")
    table.add_column("Kind", style="bold")
    table.add_column("Content")

    for i, segment in enumerate(message.parsed_content):
        if isinstance(segment, TagNode):
            detail = segment.tag if segment.value is None else f"{segment.tag} = {segment.value}"
            table.add_row(str(i), "tag", escape(detail))
        else:
            table.add_row(str(i), "text", escape(repr(segment.text)))

    console.print(table)

    mentions = message.mentions
    if mentions is None:
        console.print("Mentions: [dim]none[/dim]")
    else:
        console.print(f"Mentions: everyone={mentions.mentions_everyone} present={mentions.mentions_present}")
        for user_id in mentions.mentioned_ids:
            console.print(f"  • {escape(user_id.bracketed())} ({user_id.raw})")

    console.print(f"Wire: {escape(wire_text)}", soft_wrap=True)


@cli.command()
@click.argument("user_ids", nargs=-1, required=True)
@click.option("--message", "-m", default="", help="Message body the mentions are appended to")
@click.option("--all", "mention_all", is_flag=True, help="Prefix the message with @all")
@click.option("--here", "mention_here", is_flag=True, help="Prefix the message with @here")
def mention(user_ids, message, mention_all, mention_here):
    """Build a message mentioning USER_IDS (bracketed form or raw 64-bit id)."""
    from kether.communication import (
        create_message_with_all_mention,
        create_message_with_here_mention,
        create_message_with_mentions,
    )
    from kether.ids import UserId

    ids = []
    for value in user_ids:
        try:
            ids.append(UserId(int(value)) if value.isdigit() else UserId.parse(value))
        except ValueError as e:
            raise click.BadParameter(str(e), param_hint="USER_IDS")

    result = create_message_with_mentions(message, ids).strip()
    if mention_here:
        result = create_message_with_here_mention(result)
    if mention_all:
        result = create_message_with_all_mention(result)

    console.print(escape(result), soft_wrap=True)
