"""Loads configurations from .yaml files and expands environment variables.

The parameter yaml has the structure

input:
outdir:
log_dir:
skip_invalid_samples:
algorithm:
    num_cores:
    tools_off:
databases:
    kneaddata:
    metaphlan:
    humann_nucleotide:
    humann_protein:
resources:
    program1:
        cmd:
        options:
multiqc:
    config:
    logo:
    methods_description:
    title:
notify:
    email:
    email_on_fail:
    plaintext_email:
    hook_url:
"""
import copy
import os
import sys

import toolz as tz
import yaml


class CmdNotFound(Exception):
    pass

DEFAULTS = {"outdir": "results",
            "skip_invalid_samples": False,
            "algorithm": {"num_cores": 1, "tools_off": []},
            "databases": {},
            "resources": {},
            "multiqc": {},
            "notify": {}}

# ## Retrieval functions

def load_config(config_file=None, overrides=None):
    """Load the YAML parameter file, replacing environmental variables.

    Values are merged over the built in defaults; `overrides`, usually from the
    command line, take precedence over values from the file.
    """
    config = copy.deepcopy(DEFAULTS)
    if config_file:
        if not os.path.exists(config_file):
            raise ValueError("Could not find input parameter file %s" % config_file)
        with open(config_file) as in_handle:
            file_config = yaml.safe_load(in_handle) or {}
        if not isinstance(file_config, dict):
            raise ValueError("Parameter file %s should contain a YAML mapping, found: %s" %
                             (config_file, type(file_config).__name__))
        config = merge_config(config, _expand_paths(file_config))
        config["params_file"] = os.path.abspath(config_file)
    if overrides:
        config = merge_config(config, {k: v for k, v in overrides.items() if v is not None})
    # lowercase resource names, the preferred way to specify
    config["resources"] = {k.lower(): v for k, v in config["resources"].items()}
    config["algorithm"]["tools_off"] = _as_list(config["algorithm"].get("tools_off"))
    return config

def merge_config(base, update):
    """Merge nested configuration dictionaries, preferring values in update.
    """
    return tz.merge_with(_merge_values, base, update)

def _merge_values(vals):
    if all(isinstance(v, dict) for v in vals):
        return merge_config(*vals)
    return vals[-1]

def _as_list(val):
    if not val:
        return []
    if isinstance(val, (list, tuple)):
        return list(val)
    return [val]

def _expand_paths(config):
    for field, setting in config.items():
        if isinstance(config[field], dict):
            config[field] = _expand_paths(config[field])
        else:
            config[field] = expand_path(setting)
    return config

def expand_path(path):
    """ Combines os.path.expandvars with replacing ~ with $HOME.
    """
    try:
        return os.path.expandvars(path.replace("~", "$HOME"))
    except AttributeError:
        return path

def get_resources(name, config):
    """Retrieve resources for a program, pulling from multiple config sources.
    """
    config = config.get("config", config)
    return tz.get_in(["resources", name], config,
                     tz.get_in(["resources", "default"], config, {}))

def get_program(name, config, default=None):
    """Retrieve the command line for a program from the configuration.

    The preferred location for program information is `resources: {name: {cmd: }}`;
    falls back to the program name, checked against the PATH and the
    directory of the running interpreter.
    """
    # support taking in the data dictionary
    config = config.get("config", config)
    pconfig = config.get("resources", {}).get(name)
    return _get_program_cmd(name, pconfig, config, default)

def _get_check_program_cmd(fn):
    def wrap(name, pconfig, config, default):
        is_ok = lambda f: os.path.isfile(f) and os.access(f, os.X_OK)
        # support conda installed programs next to the interpreter
        if is_ok(os.path.join(os.path.dirname(sys.executable), name)):
            return os.path.join(os.path.dirname(sys.executable), name)
        program = expand_path(fn(name, pconfig, config, default))
        if is_ok(program):
            return program
        # search the PATH now
        for adir in os.environ.get('PATH', "").split(os.pathsep):
            if is_ok(os.path.join(adir, program)):
                return os.path.join(adir, program)
        raise CmdNotFound(" ".join(map(repr, (fn.__name__, name, pconfig, default))))
    return wrap

@_get_check_program_cmd
def _get_program_cmd(name, pconfig, config, default):
    """Retrieve commandline of a program.
    """
    if pconfig is None:
        return default or name
    elif isinstance(pconfig, str):
        return pconfig
    elif "cmd" in pconfig:
        return pconfig["cmd"]
    elif default is not None:
        return default
    else:
        return name

def get_options(name, config):
    """Retrieve additional command line options for a program as a string.
    """
    opts = get_resources(name, config).get("options", [])
    if isinstance(opts, str):
        opts = [opts]
    return " ".join(str(x) for x in opts)

# ## Retrieval and update to configuration from arguments

def is_std_config_arg(x):
    return isinstance(x, dict) and "algorithm" in x and "resources" in x and "files" not in x

def is_nested_config_arg(x):
    return isinstance(x, dict) and "config" in x and is_std_config_arg(x["config"])

def add_cores_to_config(args, cores_per_job):
    """Add information about available cores for a job to configuration.
    """
    def _update_cores(config):
        config["algorithm"]["num_cores"] = int(cores_per_job)
        return config
    return _update_config(args, _update_cores, allow_missing=True)

def _update_config(args, update_fn, allow_missing=False):
    """Update configuration, nested in argument list, with the provided update function.
    """
    new_i = None
    for i, arg in enumerate(args):
        if (is_std_config_arg(arg) or is_nested_config_arg(arg) or
              (isinstance(arg, (list, tuple)) and arg and is_nested_config_arg(arg[0]))):
            new_i = i
            break
    if new_i is None:
        if allow_missing:
            return args
        else:
            raise ValueError("Could not find configuration in args: %s" % str(args))

    args = list(args)
    new_arg = args[new_i]
    if is_nested_config_arg(new_arg):
        new_arg = dict(new_arg)
        new_arg["config"] = update_fn(copy.deepcopy(new_arg["config"]))
    elif is_std_config_arg(new_arg):
        new_arg = update_fn(copy.deepcopy(new_arg))
    else:
        first = dict(new_arg[0])
        first["config"] = update_fn(copy.deepcopy(first["config"]))
        new_arg = [first] + list(new_arg[1:])
    args[new_i] = new_arg
    return args
