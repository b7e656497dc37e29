# register_commands.py

from __future__ import annotations
import os, sys
from dotenv import load_dotenv
import requests

load_dotenv()

BOT_TOKEN = os.getenv("BOT_TOKEN")
CLIENT_ID = os.getenv("CLIENT_ID")
GUILD_ID = os.getenv("GUILD_ID")

HEADERS = {
    "Authorization": f"Bot {BOT_TOKEN}",
    "Content-Type": "application/json"
}

# Option types used below
CHANNEL = 7
ROLE = 8
USER = 6
INTEGER = 4

# The commands to register (guild-scoped)
COMMANDS = [
    {
        "name": "setlog",
        "description": "Set the channel where promotion results should be logged.",
        "options": [
            {"name": "channel", "description": "Text channel to use as logs", "type": CHANNEL, "required": True}
        ]
    },
    {
        "name": "greetrole",
        "description": "Set the role held by new members.",
        "options": [
            {"name": "role", "description": "New member role", "type": ROLE, "required": True}
        ]
    },
    {
        "name": "promoteroles",
        "description": "Set the junior and full member roles.",
        "options": [
            {"name": "junior", "description": "Junior member role", "type": ROLE, "required": True},
            {"name": "full", "description": "Full member role", "type": ROLE, "required": True}
        ]
    },
    {
        "name": "promoterules",
        "description": "Set the promotion rules.",
        "options": [
            {"name": "new_chat", "description": "Channel new members must post in", "type": CHANNEL, "required": True},
            {"name": "junior_chat", "description": "Channel junior members must post in", "type": CHANNEL, "required": True},
            {"name": "new_min_messages", "description": "Messages needed in the new chat channel", "type": INTEGER, "required": True, "min_value": 0},
            {"name": "junior_min_messages", "description": "Messages needed in the junior chat channel", "type": INTEGER, "required": True, "min_value": 0},
            {"name": "junior_min_age_days", "description": "Days a member must have been in the server before becoming full", "type": INTEGER, "required": True, "min_value": 0},
            {"name": "new_message_max_age_days", "description": "Only messages newer than this many days are counted", "type": INTEGER, "required": True, "min_value": 0}
        ]
    },
    {
        "name": "promoteconfig",
        "description": "Show the current promotion settings.",
    },
    {
        "name": "promote",
        "description": "Find eligible members and ask to promote them.",
        "options": [
            {"name": "member", "description": "Override checks and upgrade this member to the next level", "type": USER, "required": False}
        ]
    }
]

def discover_application_id() -> str:
    print("-> Discovering application (bot) id using BOT_TOKEN...")
    r = requests.get("https://discord.com/api/v10/users/@me", headers=HEADERS)
    if r.status_code != 200:
        print(f"Failed to fetch /users/@me: {r.status_code} {r.text}")
        print("Common causes: wrong BOT_TOKEN, token revoked, or network issue.")
        sys.exit(1)
    me = r.json()
    print("Bot user id (application id) discovered:", me.get("id"))
    return me.get("id")

def api_base(app_id: str) -> str:
    return f"https://discord.com/api/v10/applications/{app_id}/guilds/{GUILD_ID}/commands"

def show_existing(base: str):
    r = requests.get(base, headers=HEADERS)
    if r.status_code == 200:
        cmds = r.json()
        if not cmds:
            print("No guild application commands currently registered.")
        else:
            print("Existing guild commands:")
            for c in cmds:
                print(f" - {c.get('name')} (id: {c.get('id')})")
    else:
        print("Failed to fetch existing commands:", r.status_code, r.text)
        if r.status_code in (401, 403):
            print("Auth error: verify BOT_TOKEN and that the token has not been revoked and that the bot is in the guild.")
            sys.exit(1)

def register_all(base: str):
    print("Registering / overwriting guild commands (bulk PUT)...")
    r = requests.put(base, headers=HEADERS, json=COMMANDS)
    if r.status_code in (200, 201):
        print("Success. Registered commands:")
        for c in r.json():
            print(f" - {c.get('name')} (id: {c.get('id')})")
    else:
        print("Failed to register commands:", r.status_code, r.text)
        sys.exit(1)

def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    force = "--force" in argv
    if not BOT_TOKEN or not GUILD_ID or (not CLIENT_ID and not force):
        print("ERROR: BOT_TOKEN and GUILD_ID (and CLIENT_ID unless --force) must be set in your .env")
        sys.exit(1)
    # --force ignores CLIENT_ID and asks Discord which application the token belongs to
    base = api_base(discover_application_id() if force else CLIENT_ID)
    print("== SHOW EXISTING ==")
    show_existing(base)
    print("\nThis script will now replace guild commands with the commands defined here.")
    register_all(base)
    print("\nDone. Slash commands should appear in your server shortly (usually instantly).")

if __name__ == "__main__":
    main()
