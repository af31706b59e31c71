"""Entry point: takes an app idea, runs the build flow, saves and exports the app."""

import asyncio
import sys
from typing import Optional

from vibe.agents.generator import LLMGenerationProvider
from vibe.config import get_config
from vibe.controller import FlowController
from vibe.state import Phase
from vibe.transcription import TypedTranscriptionSource
from vibe.utils.exporter import export_artifact
from vibe.utils.store import JsonArtifactStore


def _choose(label: str, options: list[str], default: int = 0) -> int:
    """Prompt for a 1-based choice in the terminal. Enter keeps the default."""
    for i, option in enumerate(options, 1):
        marker = " [current]" if i - 1 == default else ""
        print(f"  {i}. {option}{marker}")

    while True:
        choice = input(f"{label} (number, Enter for {default + 1}): ").strip()
        if not choice:
            return default
        try:
            choice_num = int(choice)
        except ValueError:
            print("Please enter a number.")
            continue
        if 1 <= choice_num <= len(options):
            return choice_num - 1
        print(f"Please enter a number between 1 and {len(options)}.")


def _review(controller: FlowController) -> None:
    """Let the user pick a variation and optionally a theme."""
    candidates = controller.candidates
    print(f"\n--- {len(candidates)} variation(s) generated ---\n")
    index = _choose(
        "Pick a variation",
        [f"{c.name} ({len(c.markup):,} chars, {c.theme.name} theme)" for c in candidates],
        controller.selected_index,
    )
    controller.select(index)

    if input("Customize the theme? [y/N]: ").strip().lower() == "y":
        controller.customize()
        names = [t.name for t in controller.catalog]
        current = names.index(controller.session.selected_theme.name)
        theme = controller.catalog[_choose("Pick a theme", names, current)]
        controller.select_theme(theme)
        print(f"[Vibe] Applied the {theme.name} theme to all variations.")


def _name_and_icon(controller: FlowController) -> None:
    options = controller.icon_options()
    current = options.index(controller.session.selected_icon) if controller.session.selected_icon in options else 0
    icon_index = _choose("Pick an icon", [f"{o.symbol} ({o.color})" for o in options], current)
    controller.select_icon(options[icon_index])

    name = input(f"App name [{controller.session.chosen_name}]: ").strip()
    if name:
        controller.set_name(name)


async def run(
    prompt: str,
    interactive: bool = True,
    controller: Optional[FlowController] = None,
    theme_name: Optional[str] = None,
) -> None:
    """Run the full build flow for one app idea.

    Args:
        prompt: The user's app idea.
        interactive: When False, accept the first variation, default theme,
            default icon and default name.
        controller: Override for tests. None builds one from config.
        theme_name: Catalog theme to generate every variation in. None lets
            each variation take its own theme.
    """
    config = get_config()
    if controller is None:
        controller = FlowController(
            provider=LLMGenerationProvider(),
            transcriber=TypedTranscriptionSource(),
            store=JsonArtifactStore(config.get("store_path")),
        )

    await controller.start_listening()
    if controller.phase != Phase.LISTENING:
        print(f"[Vibe] {controller.notice or 'Could not start listening.'}")
        return

    controller.set_prompt(prompt)
    if theme_name:
        matches = [t for t in controller.catalog if t.name.lower() == theme_name.lower()]
        if not matches:
            controller.cancel()
            names = ", ".join(t.name for t in controller.catalog)
            print(f"[Vibe] Unknown theme '{theme_name}'. Available: {names}")
            return
        controller.request_theme(matches[0])
    print("[Vibe] Generating variations...")
    await controller.stop_listening()

    if controller.phase == Phase.IDLE:
        print("[Vibe] Nothing to build: the prompt was empty.")
        return
    if controller.notice:
        print(f"[Vibe] {controller.notice}")

    if interactive:
        _review(controller)
    controller.confirm_selection()
    if interactive:
        _name_and_icon(controller)

    artifact = controller.save()
    output_path = export_artifact(artifact, config.get("export_dir"))
    for warning in controller.warnings:
        print(f"[Vibe] Warning: {warning}")
    print(f"[Vibe] Saved '{artifact.name}' ({artifact.icon_ref}, {artifact.color_ref})")
    print(f"[Vibe] App written to: {output_path}")


def _list_apps(store: JsonArtifactStore) -> None:
    apps = store.list()
    if not apps:
        print("No saved apps yet.")
        return
    for app in apps:
        print(f"{app.id}  {app.created_at:%Y-%m-%d %H:%M}  {app.name}  ({app.icon_ref})")


def main() -> None:
    """CLI entry point — accepts the app idea as argument or from stdin."""
    config = get_config()
    interactive = True
    args = sys.argv[1:]

    if "--list" in args:
        _list_apps(JsonArtifactStore(config.get("store_path")))
        return

    if "--delete" in args:
        pos = args.index("--delete")
        if pos + 1 >= len(args):
            print("Usage: vibe --delete APP_ID", file=sys.stderr)
            sys.exit(2)
        store = JsonArtifactStore(config.get("store_path"))
        removed = store.remove(args[pos + 1])
        print("Deleted." if removed else "No app with that id.")
        return

    if "--no-interactive" in args:
        interactive = False
        args.remove("--no-interactive")

    theme_name = None
    if "--theme" in args:
        pos = args.index("--theme")
        if pos + 1 >= len(args):
            print("Usage: vibe --theme NAME [idea...]", file=sys.stderr)
            sys.exit(2)
        theme_name = args[pos + 1]
        del args[pos:pos + 2]

    if args:
        prompt = " ".join(args)
    else:
        print("Describe the app you want to create (Ctrl+D / Ctrl+Z to submit):")
        prompt = sys.stdin.read()

    asyncio.run(run(prompt, interactive=interactive, theme_name=theme_name))


if __name__ == "__main__":
    main()
