#!/usr/bin/env python3

# Copyright (C) 2021-2025 IGM authors
# Published under the GNU GPL (Version 3), check at the LICENSE file

"""
Categories of the grounded/floating mask.

Values above FLOATING mark "at time 0" variants that behave like floating ice
(OCEAN_AT_TIME_0 reduces to FLOATING), which is what `reduce_mask` computes.
"""

from enum import IntEnum

import tensorflow as tf


class MaskValue(IntEnum):
    UNKNOWN = -1
    SHEET = 1
    DRAGGING_SHEET = 2
    FLOATING = 3
    OCEAN_AT_TIME_0 = 7


def reduce_mask(mask):
    mask = tf.cast(mask, tf.int32)
    return tf.where(mask > int(MaskValue.FLOATING), mask - 4, mask)


def is_floating(mask):
    return tf.equal(reduce_mask(mask), int(MaskValue.FLOATING))


def is_grounded(mask):
    return tf.logical_not(is_floating(mask))
