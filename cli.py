"""
Terminal chat client for the LLM chat gateway.

Logs in, then reads chat input in a loop. Plain lines are sent to the
current session and the reply is streamed back token by token; lines that
start with a slash are commands (/help lists them).

    python cli.py --url http://localhost:5000 --username me --password secret
"""
import argparse
import getpass
import os
import sys

from chat_client import ChatClient, ChatClientError, AuthError, DEFAULT_BASE_URL
from commands import (
    parse_command, plain_text, is_known, split_role_definition, find_role,
    format_role_list, help_text,
)


class ChatShell:
    def __init__(self, client, model, out=sys.stdout):
        self.client = client
        self.model = model
        self.out = out
        self.session = None
        self.role = None
        self.running = True

    def say(self, text=""):
        print(text, file=self.out)

    def prompt(self):
        role = f" [{self.role['name']}]" if self.role else ""
        return f"\n{self.model}{role}> "

    # ---------- chat ----------

    def send(self, text):
        if self.session is None:
            self.session = self.client.create_session()
        role_id = self.role["id"] if self.role else None
        self.out.write("Assistant: ")
        for piece in self.client.stream_session_chat(self.session["id"], text, model=self.model, role_id=role_id):
            self.out.write(piece)
            self.out.flush()
        self.say()

    def handle(self, line):
        """Process one line of input. Returns False once the shell should exit."""
        command = parse_command(line)
        if command is None:
            text = plain_text(line)
            if text:
                self.send(text)
            return self.running
        if not is_known(command):
            self.say(f"Unknown command: /{command.name} (try /help)")
            return self.running
        getattr(self, f"cmd_{command.name}")(command.argument)
        return self.running

    # ---------- commands ----------

    def cmd_help(self, _arg):
        self.say(help_text())

    def cmd_quit(self, _arg):
        self.running = False

    cmd_exit = cmd_quit

    def cmd_new(self, arg):
        self.session = self.client.create_session(arg or None)
        self.say(f"Started session: {self.session['title']}")

    def cmd_sessions(self, _arg):
        sessions = self.client.list_sessions()
        if not sessions:
            self.say("No sessions yet.")
        for i, s in enumerate(sessions, 1):
            marker = "*" if self.session and s["id"] == self.session["id"] else " "
            self.say(f"{marker}{i:>3}. {s['title']}  ({s['id']})")

    def cmd_switch(self, arg):
        sessions = self.client.list_sessions()
        chosen = None
        if arg.isdigit() and 1 <= int(arg) <= len(sessions):
            chosen = sessions[int(arg) - 1]
        else:
            chosen = next((s for s in sessions if s["id"] == arg), None)
        if chosen is None:
            self.say(f"No such session: {arg}")
            return
        self.session = chosen
        self.say(f"Switched to: {chosen['title']}")

    def cmd_rename(self, arg):
        if not self.session or not arg:
            self.say("Usage: /rename <title> (inside a session)")
            return
        self.session = self.client.rename_session(self.session["id"], arg)
        self.say(f"Renamed to: {self.session['title']}")

    def cmd_delete(self, _arg):
        if not self.session:
            self.say("No current session.")
            return
        self.client.delete_session(self.session["id"])
        self.say(f"Deleted: {self.session['title']}")
        self.session = None

    def cmd_history(self, _arg):
        if not self.session:
            self.say("No current session.")
            return
        for m in self.client.get_messages(self.session["id"]):
            self.say(f"[{m['role']}] {m['content']}")

    def cmd_models(self, _arg):
        for m in self.client.list_models():
            marker = "*" if m["id"] == self.model else " "
            self.say(f"{marker} {m['id']}  ({m.get('litellm_provider', '?')})")

    def cmd_model(self, arg):
        if not arg:
            self.say(f"Current model: {self.model}")
            return
        self.model = arg
        self.say(f"Model set to {arg}")

    def cmd_roles(self, _arg):
        self.say(format_role_list(self.client.list_roles()))

    def cmd_role(self, arg):
        if not arg:
            self.say("Usage: /role <name>|none")
            return
        if arg.lower() == "none":
            self.role = None
            self.say("Role cleared.")
            return
        role = find_role(self.client.list_roles(), arg)
        if role is None:
            self.say(f"Role not found: {arg}")
            return
        self.role = role
        self.say(f"Selected role: {role['name']}")

    def cmd_addrole(self, arg):
        parsed = split_role_definition(arg)
        if parsed is None:
            self.say("Usage: /addrole <name> | <instructions>")
            return
        role = self.client.create_role(*parsed)
        self.say(f"Created role: {role['name']}")

    def cmd_delrole(self, arg):
        role = find_role(self.client.list_roles(), arg)
        if role is None:
            self.say(f"Role not found: {arg}")
            return
        self.client.delete_role(role["id"])
        if self.role and self.role["id"] == role["id"]:
            self.role = None
        self.say(f"Deleted role: {role['name']}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Chat with models behind the LLM gateway")
    parser.add_argument("--url", default=DEFAULT_BASE_URL)
    parser.add_argument("--username", default=os.getenv("CHAT_USERNAME"))
    parser.add_argument("--password", default=os.getenv("CHAT_PASSWORD"))
    parser.add_argument("--model", default=os.getenv("LLM_DEFAULT_MODEL", "gpt-3.5-turbo"))
    args = parser.parse_args(argv)

    client = ChatClient(args.url)
    if not client.health():
        print(f"Backend at {args.url} is not reachable.", file=sys.stderr)
        return 1

    username = args.username or input("Username: ").strip()
    password = args.password or getpass.getpass("Password: ")
    try:
        client.login(username, password)
    except ChatClientError as e:
        print(f"Login failed: {e}", file=sys.stderr)
        return 1

    shell = ChatShell(client, args.model)
    shell.say("Type a message, or /help for commands.")
    while shell.running:
        try:
            line = input(shell.prompt())
        except (KeyboardInterrupt, EOFError):
            break
        try:
            shell.handle(line)
        except AuthError:
            shell.say("Session expired, please log in again.")
            return 1
        except ChatClientError as e:
            shell.say(f"Error: {e}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
