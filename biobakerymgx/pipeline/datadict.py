"""
functions to access the per-sample data dictionary in a clearer way
"""
import toolz as tz

from biobakerymgx.utils import to_single_data

LOOKUPS = {
    "config": {"keys": ['config']},
    "sample_name": {"keys": ['description']},
    "metadata": {"keys": ['metadata'], "default": {}},
    "single_end": {"keys": ['metadata', 'single_end'], "default": False},
    "files": {"keys": ['files'], "default": [], "always_list": True},
    "merged": {"keys": ['merged'], "default": False},
    "work_dir": {"keys": ['dirs', 'work']},
    "out_dir": {"keys": ['dirs', 'out']},
    "tmp_dir": {"keys": ['config', 'resources', 'tmp', 'dir']},
    "num_cores": {"keys": ['config', 'algorithm', 'num_cores'], "default": 1},
    "tools_off": {"keys": ['config', 'algorithm', 'tools_off'], "default": [], "always_list": True},
    "kneaddata_db": {"keys": ['config', 'databases', 'kneaddata']},
    "metaphlan_db": {"keys": ['config', 'databases', 'metaphlan']},
    "metaphlan_index": {"keys": ['config', 'databases', 'metaphlan_index']},
    "humann_nucleotide_db": {"keys": ['config', 'databases', 'humann_nucleotide']},
    "humann_protein_db": {"keys": ['config', 'databases', 'humann_protein']},
    "preprocessed_files": {"keys": ['preprocessed', 'files'], "default": [], "always_list": True},
    "preprocessed_combined": {"keys": ['preprocessed', 'combined']},
    "kneaddata_log": {"keys": ['preprocessed', 'log']},
    "metaphlan_profile": {"keys": ['metaphlan', 'profile']},
    "metaphlan_bowtie2": {"keys": ['metaphlan', 'bowtie2']},
    "humann": {"keys": ['humann'], "default": {}},
    "summary_qc": {"keys": ['summary', 'qc'], "default": {}},
    "versions": {"keys": ['versions'], "default": [], "always_list": True},
}

def getter(keys, global_default=None, always_list=False):
    def lookup(config, default=None):
        default = global_default if not default else default
        val = tz.get_in(keys, config, default)
        if always_list:
            if not val:
                val = []
            elif not isinstance(val, (list, tuple)): val = [val]
        return val
    return lookup

def setter(keys):
    def update(config, value):
        return tz.update_in(config, keys, lambda x: value, default=value)
    return update

def is_setter(keys):
    def present(config):
        try:
            value = tz.get_in(keys, config, no_default=True)
        except (KeyError, IndexError, TypeError):
            value = False
        return True if value else False
    return present

"""
generate the getter and setter functions but don't override any explicitly
defined
"""
_g = globals()
for k, v in LOOKUPS.items():
    keys = v['keys']
    getter_fn = 'get_' + k
    if getter_fn not in _g:
        _g["get_" + k] = getter(keys, v.get('default', None), v.get("always_list", False))
    setter_fn = 'set_' + k
    if setter_fn not in _g:
        _g["set_" + k] = setter(keys)
    is_setter_fn = "is_set_" + k
    if is_setter_fn not in _g:
        _g["is_set_" + k] = is_setter(keys)

def sample_data_iterator(samples):
    """
    for a list of samples, return the data dictionary of each sample
    """
    for sample in samples:
        yield to_single_data(sample)

def update_summary_qc(data, key, base=None, secondary=None):
    """
    updates summary_qc with a new section, keyed by key.
    stick files into summary_qc if you want them propagated forward
    and available for multiqc
    """
    summary = dict(get_summary_qc(data, {}))
    if base and secondary:
        summary[key] = {"base": base, "secondary": secondary}
    elif base:
        summary[key] = {"base": base}
    elif secondary:
        summary[key] = {"secondary": secondary}
    else:
        summary[key] = None
    data = set_summary_qc(data, summary)
    return data

def add_versions(data, records):
    """
    append tool version records produced while processing a sample
    """
    return set_versions(data, get_versions(data) + list(records))

def is_tool_off(data, tool):
    return tool in get_tools_off(data)
