# commands.py - slash commands typed into the chat prompt
from collections import namedtuple

SlashCommand = namedtuple("SlashCommand", ["name", "argument"])

COMMANDS = {
    "help": "Show this list",
    "new": "/new [title] - start a new session",
    "sessions": "List sessions",
    "switch": "/switch <number|id> - continue another session",
    "rename": "/rename <title> - rename the current session",
    "delete": "Delete the current session",
    "history": "Show the messages of the current session",
    "models": "List models offered by the gateway",
    "model": "/model <id> - choose the model",
    "roles": "List role presets",
    "role": "/role <name>|none - apply a role preset to the next messages",
    "addrole": "/addrole <name> | <instructions> - create a role preset",
    "delrole": "/delrole <name> - delete a role preset",
    "quit": "Exit",
    "exit": "Exit",
}


def parse_command(text):
    """
    Split chat input into a SlashCommand, or return None for a plain message.

    `//text` is a plain message starting with a literal slash; unwrap it with
    `plain_text`.
    """
    if not text:
        return None
    text = text.strip()
    if not text.startswith("/") or text.startswith("//") or text == "/":
        return None
    head, _, rest = text[1:].partition(" ")
    return SlashCommand(head.lower(), rest.strip())


def plain_text(text):
    text = text.strip()
    return text[1:] if text.startswith("//") else text


def is_known(command):
    return command.name in COMMANDS


def split_role_definition(argument):
    """`name | instructions` -> (name, instructions); None when malformed."""
    name, sep, instructions = argument.partition("|")
    name, instructions = name.strip(), instructions.strip()
    if not sep or not name or not instructions:
        return None
    return name, instructions


def find_role(roles, name):
    wanted = (name or "").strip().lower()
    for role in roles:
        if role["name"].lower() == wanted:
            return role
    return None


def format_role_list(roles):
    if not roles:
        return "No roles defined."
    return "Roles:\n" + "\n".join(f"• {r['name']}" for r in roles)


def help_text():
    return "\n".join(f"  /{name:<9} {desc}" for name, desc in COMMANDS.items())
