"""CLI Commands"""

import os
import sys
from collections.abc import Mapping

from aicommit.config import (
    ENV_PREFIX,
    ConfigError,
    ConfigErrorKind,
    ConfigManager,
    SessionConfig,
    coerce_value,
    resolve,
)
from aicommit.llm import PROVIDERS, BackendError, create_backend
from aicommit.output import DOT_OFF, DOT_ON, bold, dim, info, print_error, print_success, success
from aicommit.session import ExitCode


def display_config(manager: ConfigManager, environ: Mapping[str, str]) -> int:
    """Display the resolved configuration with the credential redacted."""
    config = manager.load(environ, require_credentials=False)

    print(f"\n{bold('Current Configuration')}\n")

    if manager.loaded_paths:
        for path in manager.loaded_paths:
            print(f"  {dim('Loaded from:')} {path}")
    else:
        print(f"  {dim('Loaded from:')} defaults (no .aicommitrc found)")

    env_overrides = sorted(k for k in environ if k.startswith(ENV_PREFIX) and k != f"{ENV_PREFIX}LOG_LEVEL")
    if env_overrides:
        print(f"  {dim('Environment overrides:')}")
        for key in env_overrides:
            print(f"    {key}")

    print()
    print(f"  {bold('Settings:')}")
    values = config.redacted()
    values.pop("system_prompt")
    width = max(len(name) for name in values) + 1
    for name, value in values.items():
        shown = 'not set' if value is None else str(value).lower() if isinstance(value, bool) else str(value)
        print(f"    {(name + ':').ljust(width)} {info(shown)}")

    print(f"\n  {dim('Config locations:')}")
    print(f"    Local:  {manager.local_path}")
    print(f"    Global: {manager.global_path}")
    print(f"\n  {dim('Run')} ai-commit config set KEY VALUE {dim('to change a setting')}\n")

    return ExitCode.OK


def _layers_after_save(manager: ConfigManager, updates: Mapping, global_config: bool) -> list[dict]:
    """The file layers as they will read once `updates` is written."""
    layers = manager.file_layers()
    by_path = dict(zip([p.resolve() for p in manager.loaded_paths], layers))
    target = (manager.global_path if global_config else manager.local_path).resolve()
    by_path[target] = {**by_path.get(target, {}), **updates}
    order = dict.fromkeys(p.resolve() for p in (manager.global_path, manager.local_path))
    return [by_path[p] for p in order if p in by_path]


def set_config(
    manager: ConfigManager,
    key: str,
    value: str,
    environ: Mapping[str, str],
    global_config: bool = True,
) -> int:
    """Validate one setting against the full configuration, then persist it.

    Switching provider clears a saved model the new provider does not
    offer, so the provider's default model applies.
    """
    # ${NAME} references are stored verbatim and expanded at load time
    stored = value if '${' in value else coerce_value(key, value)
    updates = {key: stored}

    if key == "provider":
        unpinned = [
            {k: v for k, v in layer.items() if k != "model"}
            for layer in _layers_after_save(manager, updates, global_config)
        ]
        switched = resolve(unpinned, environ, require_credentials=False)
        try:
            resolve(_layers_after_save(manager, updates, global_config), environ, require_credentials=False)
        except ConfigError as e:
            if e.kind != ConfigErrorKind.UNKNOWN_MODEL:
                raise
            updates["model"] = ""
            print(f"  {dim('Saved model is not offered by')} {switched.provider}; "
                  f"{dim('using its default')} {switched.model}")

    resolve(_layers_after_save(manager, updates, global_config), environ, require_credentials=False)

    path = manager.save(updates, global_config=global_config)
    shown = "(hidden)" if key == "api_key" and '${' not in value else value
    print_success(f"Set {key} = {shown} in {path}")
    return ExitCode.OK


def list_models(config: SessionConfig) -> int:
    """List the active provider's models, marking the configured one."""
    spec = PROVIDERS[config.provider]
    try:
        models = create_backend(config).list_models()
    except BackendError as e:
        print_error(f"Could not list models for {spec.name} ({e.kind.value}): {e}")
        return ExitCode.GENERATION_FAILED

    print(f"\n{bold(spec.name)} {dim('models:')}\n")
    if config.model not in models:
        models = [config.model, *models]
    for model in models:
        if model == config.model:
            print(f"  {success(DOT_ON)} {bold(model)}")
        else:
            print(f"  {dim(DOT_OFF)} {model}")
    print()
    return ExitCode.OK


def run_install_completion() -> int:
    """Install shell tab completion."""
    shell = os.environ.get('SHELL', '')

    print(f"\n{bold('Tab Completion Setup')}\n")

    line = 'eval "$(register-python-argcomplete ai-commit)"'
    if 'zsh' in shell or 'bash' in shell:
        rc_file = os.path.expanduser('~/.zshrc' if 'zsh' in shell else '~/.bashrc')
        print(f"Add this line to {dim(rc_file)}:\n")
        print(f"  {line}\n")
        print(f"Then run: {dim('source ' + rc_file)}")
    elif sys.platform == 'win32':
        print("For PowerShell, add this to your $PROFILE:\n")
        print("  register-python-argcomplete --shell powershell ai-commit | Out-String | Invoke-Expression")
    else:
        print("Run one of these based on your shell:\n")
        print(f"  {dim('# Bash/Zsh')}")
        print(f"  {line}\n")
        print(f"  {dim('# Fish')}")
        print("  register-python-argcomplete --shell fish ai-commit | source")

    print(f"\n{dim('After setup, press TAB to autocomplete flags.')}")
    return ExitCode.OK
