"""
Constants for read-quality scoring.

Contains the FASTQ encoding offset, the defaults used by the Q-score
estimators and the sample batcher, and the naming conventions of the
trimmed FASTQ files produced by the upstream ITS workflow.
"""

# Sanger / Illumina 1.8+ quality encoding
PHRED_OFFSET = 33

# Score reported for reads with zero expected errors (-10 * log10(0) is infinite)
DEFAULT_MAX_QSCORE = 60.0

# Samples per report page
DEFAULT_BATCH_SIZE = 12

# Trimmed read file naming: <sample_id>_trimmed.<ext> or <sample_id>_full_trimmed.<ext>
TRIMMED_FASTQ_PATTERN = r"^(?P<sample_id>.+?)(?:_full)?_trimmed\.(?:fastq|fq)(?:\.gz)?$"
FASTQ_EXTENSIONS = (".fastq.gz", ".fq.gz", ".fastq", ".fq")

# Globs used to locate trimmed reads in a directory
TRIMMED_FASTQ_GLOBS = (
    "*_trimmed.fastq.gz",
    "*_trimmed.fq.gz",
    "*_trimmed.fastq",
    "*_trimmed.fq",
)

# Manifest for single-end import into QIIME 2
MANIFEST_HEADER = ("sample-id", "absolute-filepath", "direction")
MANIFEST_DIRECTION = "forward"

# Decimal places kept for aggregated-error scores; drops log10 round-off so a
# read of constant quality q scores exactly q
QSCORE_DECIMALS = 10
