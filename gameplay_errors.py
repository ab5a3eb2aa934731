# -*- coding: utf-8 -*-
########################
# gameplay_errors.py
########################
# Purpose:
# - Exception types raised at the edges of the gameplay engine.
#
# Design notes:
# - Only configuration problems and start preconditions raise.
# - A hand missing from a detection frame is normal input, not an error.
#   The conditioner reports it as an absent position.
#
########################
# Interfaces:
# Public exceptions:
# - GameplayError(Exception)
# - InvalidConfiguration(GameplayError, ValueError)
# - SensorUnavailable(GameplayError, RuntimeError)
# - AudioSourceMissing(GameplayError, RuntimeError)
#
########################

from __future__ import annotations


class GameplayError(Exception):
    pass


class InvalidConfiguration(GameplayError, ValueError):
    """Raised for a bad tempo or beat range, or a config file that fails validation."""


class SensorUnavailable(GameplayError, RuntimeError):
    """Raised when a session is started before hand tracking reports ready."""


class AudioSourceMissing(GameplayError, RuntimeError):
    """Raised when a session is started without a loaded audio source."""
