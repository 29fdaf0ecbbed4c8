import logging
import os
import sys

import numpy as np

config = {
    "default_dtype": np.float32,  # single precision, like the reference engine
    "checked_arithmetic": True,  # raise on overflow / invalid instead of producing inf / nan
    "log_level": "INFO",
}

DTYPES = {
    "float32": np.float32,
    "float64": np.float64,
    "int64": np.int64,
}


def setup_logger(log_level='INFO', log_file=None):
    log_level_dict = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL
    }
    level = log_level_dict.get(log_level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        # Create the log directory if it doesn't exist
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=handlers,
        force=True,
    )
    return logging.getLogger('scalargrad')
