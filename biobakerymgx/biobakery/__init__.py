"""Taxonomic and functional profiling of metagenomes with the bioBakery tools.
"""
from biobakerymgx import utils
from biobakerymgx.biobakery import humann, kneaddata, metaphlan

def run(data):
    """Preprocess reads with KneadData then profile them with MetaPhlAn and HUMAnN.
    """
    data = utils.to_single_data(data)
    for step in [kneaddata.run, metaphlan.run, humann.run]:
        data = utils.to_single_data(utils.to_single_data(step(data)))
    return [[data]]
