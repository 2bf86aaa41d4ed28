"""
file_tools.py - Built-in filesystem tools

    read_file   whole file, verbatim
    list_files  recursive listing, sorted, directories end with "/"
    edit_file   exact-match, first-occurrence string replace (or create)

edit_file is the only tool that writes. Its contract is deliberately
simple so the model can predict it: old_str must appear in the file
verbatim, only its first occurrence is replaced, and if nothing changed
the call fails instead of silently succeeding.

Handlers raise on failure; the registry turns exceptions into tool errors.
Paths are not confined to the working directory.
"""

import json
import os

from tool_registry import ToolContext, ToolInputError, tool

CREATED_MARKER = "Successfully created file {path}"
EDITED_MARKER = "OK"
OLD_STR_NOT_FOUND = "old_str not found in file"


class EditError(Exception):
    """edit_file could not apply the requested replacement."""


# newline="" disables newline translation so CRLF and CR survive a round trip
def read_verbatim(fp) -> str:
    with open(fp, encoding="utf-8", newline="") as f:
        return f.read()


def write_verbatim(fp, content: str):
    with open(fp, "w", encoding="utf-8", newline="") as f:
        f.write(content)


def _raise_walk_error(err: OSError):
    # os.walk skips unreadable directories by default
    raise err


@tool(
    name="read_file",
    description=(
        "Read the contents of a given relative file path. Use this when you want "
        "to see what's inside a file. Do not use this with directory names."
    ),
    schema={
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "The relative path of a file in the working directory.",
            },
        },
        "required": ["path"],
    },
)
def read_file(context: ToolContext, path: str) -> str:
    return read_verbatim(context.resolve(path))


@tool(
    name="list_files",
    description=(
        "List files and directories at a given path. If no path is provided, "
        "lists files in the current directory."
    ),
    schema={
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "Optional relative path to list files from. Defaults to current directory if not provided.",
            },
        },
    },
)
def list_files(context: ToolContext, path: str = ".") -> str:
    root = context.resolve(path or ".")
    if not root.exists():
        raise FileNotFoundError(f"No such file or directory: '{path}'")
    if not root.is_dir():
        raise NotADirectoryError(f"Not a directory: '{path}'")

    entries = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        for name in dirnames:
            rel = os.path.relpath(os.path.join(dirpath, name), root)
            entries.append(rel.replace(os.sep, "/") + "/")
        for name in filenames:
            rel = os.path.relpath(os.path.join(dirpath, name), root)
            entries.append(rel.replace(os.sep, "/"))

    return json.dumps(sorted(entries))


@tool(
    name="edit_file",
    description=(
        "Make edits to a text file.\n\n"
        "Replaces 'old_str' with 'new_str' in the given file. 'old_str' and "
        "'new_str' MUST be different from each other. Only the first occurrence "
        "of 'old_str' is replaced, so include enough surrounding text to make it "
        "unique.\n\n"
        "If the file specified with path doesn't exist, it will be created "
        "(pass an empty 'old_str')."
    ),
    schema={
        "type": "object",
        "properties": {
            "path": {
                "type": "string",
                "description": "The path to the file",
            },
            "old_str": {
                "type": "string",
                "description": "Text to search for - must match exactly",
            },
            "new_str": {
                "type": "string",
                "description": "Text to replace old_str with",
            },
        },
        "required": ["path", "old_str", "new_str"],
    },
)
def edit_file(context: ToolContext, path: str, old_str: str, new_str: str) -> str:
    if not path or old_str == new_str:
        raise ToolInputError()

    fp = context.resolve(path)

    if not fp.exists():
        if old_str == "":
            return create_new_file(fp, path, new_str)
        # Nothing to match against in a file that isn't there
        raise FileNotFoundError(f"No such file or directory: '{path}'")

    old_content = read_verbatim(fp)
    new_content = old_content.replace(old_str, new_str, 1)

    if old_content == new_content and old_str != "":
        raise EditError(OLD_STR_NOT_FOUND)

    write_verbatim(fp, new_content)
    return EDITED_MARKER


def create_new_file(fp, path: str, content: str) -> str:
    fp.parent.mkdir(parents=True, exist_ok=True)
    write_verbatim(fp, content)
    return CREATED_MARKER.format(path=path)


BUILTIN_TOOLS = (read_file, list_files, edit_file)
