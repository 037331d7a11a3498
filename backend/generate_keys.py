"""Generate local secrets and write them into backend/.env.

Fills JWT_SECRET, TOKEN_ENCRYPTION_KEY and ADMIN_SECRET_KEY from
.env.template (or appends them to an existing .env when no template exists).
"""

import os
import secrets

from cryptography.fernet import Fernet

TEMPLATE_PATH = ".env.template"
ENV_PATH = ".env"


def generate() -> dict:
    return {
        "JWT_SECRET": secrets.token_urlsafe(32),
        "TOKEN_ENCRYPTION_KEY": Fernet.generate_key().decode(),
        "ADMIN_SECRET_KEY": secrets.token_urlsafe(32),
    }


def render(content: str, values: dict) -> str:
    """Replace `KEY=` lines in `content`; keys not present are appended."""
    remaining = dict(values)
    new_lines = []
    for line in content.splitlines():
        key = line.split("=", 1)[0].strip()
        if key in remaining:
            new_lines.append(f"{key}={remaining.pop(key)}")
        else:
            new_lines.append(line)
    new_lines.extend(f"{key}={value}" for key, value in remaining.items())
    return "\n".join(new_lines) + "\n"


def main():
    values = generate()
    for key in values:
        print(f"Generated {key}")

    source = TEMPLATE_PATH if os.path.exists(TEMPLATE_PATH) else ENV_PATH
    content = ""
    if os.path.exists(source):
        with open(source, "r") as f:
            content = f.read()
    else:
        print(f"No {TEMPLATE_PATH} or {ENV_PATH} found, writing a new {ENV_PATH}")

    with open(ENV_PATH, "w") as f:
        f.write(render(content, values))
    print(f"Successfully wrote to {ENV_PATH}")


if __name__ == "__main__":
    main()
