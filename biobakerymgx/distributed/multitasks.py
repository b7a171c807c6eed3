"""Multiprocessing ready entry points for sample analysis.
"""
from biobakerymgx import biobakery, utils
from biobakerymgx.distributed.multi import multiprocessing_aware_logging
from biobakerymgx.pipeline import merge
from biobakerymgx.qc import fastqc

@utils.map_wrap
@multiprocessing_aware_logging
def merge_reads(*args):
    return merge.merge_reads(*args)

@utils.map_wrap
@multiprocessing_aware_logging
def fastqc_raw(*args):
    return fastqc.run(*args, stage="raw")

@utils.map_wrap
@multiprocessing_aware_logging
def fastqc_preprocessed(*args):
    return fastqc.run(*args, stage="preprocessed")

@utils.map_wrap
@multiprocessing_aware_logging
def run_biobakery(*args):
    return biobakery.run(*args)
