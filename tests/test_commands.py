from commands import (
    SlashCommand, parse_command, plain_text, is_known, split_role_definition,
    find_role, format_role_list,
)


def test_plain_messages_are_not_commands():
    assert parse_command("hello /role x") is None
    assert parse_command("") is None
    assert parse_command("/") is None


def test_parse_command_with_and_without_argument():
    assert parse_command("/roles") == SlashCommand("roles", "")
    assert parse_command("  /Role   Code Reviewer ") == SlashCommand("role", "Code Reviewer")


def test_double_slash_escapes():
    assert parse_command("//etc/hosts is a file") is None
    assert plain_text("//etc/hosts is a file") == "/etc/hosts is a file"


def test_unknown_command_is_flagged():
    assert not is_known(parse_command("/frobnicate now"))
    assert is_known(parse_command("/quit"))


def test_split_role_definition():
    assert split_role_definition("Pirate | Talk like a pirate | always") == ("Pirate", "Talk like a pirate | always")
    assert split_role_definition("Pirate") is None
    assert split_role_definition(" | text") is None


def test_find_role_ignores_case():
    roles = [{"id": "1", "name": "Translator"}, {"id": "2", "name": "Coder"}]
    assert find_role(roles, "coder")["id"] == "2"
    assert find_role(roles, "missing") is None


def test_format_role_list():
    assert format_role_list([]) == "No roles defined."
    assert format_role_list([{"name": "A"}, {"name": "B"}]) == "Roles:\n• A\n• B"
