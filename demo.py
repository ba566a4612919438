"""
cam - Guided Journey (single run, no user input)

Run: python demo.py

Walks through the life of a private command against a throwaway config
directory, printing what the CLI would show plus what happens underneath:
 - Pinning public and private commands (first private pin creates keys)
 - What data.json actually contains
 - Public-only listing vs decrypted listing
 - A corrupted ciphertext: sentinel instead of a crash
 - Losing the private key: private commands become unreadable
 - Storing an encrypted API key in config.json
"""

import base64
import json
import os
import tempfile
from pathlib import Path
from textwrap import indent

from cam import crypto
from cam.config import ConfigStore, SecretConfigField, StorePaths
from cam.store import Store


LINE = "=" * 70


def step(title: str, command: str, code_path: str):
    print(f"\n{LINE}\n{title}  (cli: {command}, code: {code_path})\n{LINE}")


def explain(title: str, body: str):
    print(f"\n[Behind the scenes] {title}")
    print(indent(body.strip(), "  "))


def show_stacks(store: Store):
    names = store.stack_names()
    if not names:
        print("No stacks found.")
    for name in names:
        print(f"Stack: {name}")
        for i, record in enumerate(store.get_stack(name)):
            marker = "*" if record.is_private else " "
            print(f"  [{i}]{marker} {record.plaintext or '(encrypted)'}")


def main():
    with tempfile.TemporaryDirectory() as tmp:
        paths = StorePaths(Path(tmp))

        step("Pin commands", "cam pin [-p] STACK CMD", "cam/store.py:add_command")
        store = Store(paths)
        store.load(decrypt_private=True, missing_ok=True)
        store.add_command("docker", "docker ps -a")
        print(f"Keys present after public pin: {paths.keys.private_key.exists()}")
        store.add_command("danger", "rm -rf /tmp/x", is_private=True)
        store.add_command("docker", "docker exec -it db psql -U admin", is_private=True)
        print(f"Keys present after private pin: {paths.keys.private_key.exists()}")
        store.save()
        explain("Lazy keys", f"""
The first private pin called crypto.ensure_keys_exist():
  {paths.keys.private_key}  (mode {oct(os.stat(paths.keys.private_key).st_mode & 0o777)})
  {paths.keys.public_key}   (mode {oct(os.stat(paths.keys.public_key).st_mode & 0o777)})
Private commands are limited to {crypto.MAX_PAYLOAD_BYTES} bytes (RSA-OAEP, SHA-256).
""")

        step("What is on disk", "cat data.json", "cam/codec.py:for_save")
        data = json.loads(paths.data_file.read_text(encoding="utf-8"))
        for name, items in data.items():
            for item in items:
                shown = item.get("cmd") or f"encrypted={item['encrypted'][:32]}..."
                print(f"  {name}: {shown}")
        explain("Confidentiality at rest", """
Private records carry only base64 ciphertext; 'cmd' is omitted.
Encryption is randomized, so saving again produces different ciphertext.
""")

        step("Public listing", "cam ls", "cam/store.py:load(decrypt_private=False)")
        public = Store(paths)
        public.load(decrypt_private=False)
        show_stacks(public)
        explain("Filtering", """
Private records are removed, not masked. 'danger' held only private
commands, so the whole stack is gone from this view.
""")

        step("Decrypted listing", "cam ls -p", "cam/store.py:load(decrypt_private=True)")
        full = Store(paths)
        full.load(decrypt_private=True)
        show_stacks(full)

        step("Corrupted ciphertext", "cam ls -p", "cam/codec.py:decrypt_record")
        data["danger"][0]["encrypted"] = base64.b64encode(os.urandom(256)).decode("ascii")
        paths.data_file.write_text(json.dumps(data, indent=2), encoding="utf-8")
        damaged = Store(paths)
        damaged.load(decrypt_private=True)
        show_stacks(damaged)
        explain("Partial failure", """
The damaged record shows the sentinel (a shell comment, harmless if run);
every other record still decrypts. Saving keeps the damaged ciphertext
as it was instead of encrypting the sentinel over it.
""")

        step("Lost private key", "rm .keys/private_key.pem", "cam/store.py:load")
        paths.keys.private_key.unlink()
        keyless = Store(paths)
        keyless.load(decrypt_private=True)
        show_stacks(keyless)
        explain("No escrow", """
There is no backup of the private key. Without it private commands stay
encrypted forever; public ones are unaffected.
""")

        step("Encrypted API key", "cam config api-key VALUE", "cam/config.py:SecretConfigField")
        config = ConfigStore(paths)
        config.load()
        secret = SecretConfigField(config)
        secret.set("AIza-demo-key")
        raw = json.loads(paths.config_file.read_text(encoding="utf-8"))
        print(f"config.json gemini_api_key = {raw['gemini_api_key'][:32]}...")
        print(f"Decrypted: {secret.get()}")
        explain("Same keypair", """
The secret reuses the keypair; since the old private key was deleted,
set() generated a fresh pair. Old private commands remain unreadable.
""")

    print(f"\n{LINE}\nDone. Temporary directory removed.\n{LINE}")


if __name__ == "__main__":
    main()
