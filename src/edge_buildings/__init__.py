"""
Data preparation routines for building energy demand modelling


Copyright (C) 2025 Leonhard Hofbauer, licensed under a MIT license
"""
