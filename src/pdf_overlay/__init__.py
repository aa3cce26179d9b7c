# SPDX-License-Identifier: Apache-2.0
"""Page overlay editing and flattened PDF export."""

__version__ = "0.1.0"
