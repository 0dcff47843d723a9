# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Typed exceptions raised while turning run commands and compose documents
into Quadlet units.
"""
from typing import Optional


class QuadletError(Exception):
    """
    Root of all errors raised by d2q.
    """


class StructuralError(QuadletError):
    """
    The compose document cannot be used at all.

    Examples:
        - the decoded document is not a mapping
        - `services` is missing or empty
        - the YAML text could not be decoded
    """


class ServiceDefinitionError(QuadletError):
    """
    A single service definition is unusable, e.g. it has neither `image` nor `build`.
    """

    def __init__(self, message: str, service: Optional[str] = None):
        super().__init__(message)
        self.service = service


class UnsupportedFeatureError(QuadletError):
    """
    The document uses a top-level feature that cannot be expressed as Quadlet units.
    """

    def __init__(self, message: str, feature: Optional[str] = None):
        super().__init__(message)
        self.feature = feature


class FieldValidationError(QuadletError, ValueError):
    """
    A container field was given a value that does not follow its documented syntax.
    """

    def __init__(self, message: str, field: Optional[str] = None, service: Optional[str] = None):
        super().__init__(message)
        self.field = field
        self.service = service


class RunCommandError(QuadletError):
    """
    A `docker run` command could not be converted to a compose service.
    """


class UnsupportedFeatureWarning(UserWarning):
    """
    A service uses a feature that is ignored during conversion.

    Never raised; instances are collected as diagnostics.
    """

    def __init__(self, service: str, feature: str):
        super().__init__(f"Service '{service}' uses unsupported feature '{feature}' - ignoring")
        self.service = service
        self.feature = feature
