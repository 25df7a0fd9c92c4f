# Licensed to the Apache Software Foundation (ASF) under one or more
# contributor license agreements.  See the NOTICE file distributed with
# this work for additional information regarding copyright ownership.
# The ASF licenses this file to You under the Apache License, Version 2.0
# (the "License"); you may not use this file except in compliance with
# the License.  You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from http import client as httplib

from libvcloud.common.types import AuthenticationError
from libvcloud.common.types import BusyEntityError
from libvcloud.common.types import MalformedResponseError
from libvcloud.common.types import ProviderError
from libvcloud.utils.xml import get_attr, is_named, iter_named, parse_xml

__all__ = [
    'BUSY_ENTITY',
    'NO_FURTHER_INFORMATION',
    'find_error_element',
    'exception_from_element',
    'parse_error',
]

BUSY_ENTITY = 'BUSY_ENTITY'

NO_FURTHER_INFORMATION = 'No further information'

AUTHENTICATION_CODES = (httplib.UNAUTHORIZED, httplib.FORBIDDEN)


def find_error_element(element):
    """
    Return the ``Error`` element of a document, whether it is the root or
    nested somewhere below it (e.g. inside a ``Task``).
    """
    if is_named(element, 'Error'):
        return element
    return next(iter_named(element, 'Error'), None)


def exception_from_element(status, error, reason=None, driver=None):
    """
    Build the exception for an HTTP status and a parsed ``Error`` element.

    :param error: The ``Error`` element or ``None`` when the body did not
                  carry one.
    """
    major = minor = message = None

    if error is not None:
        major = get_attr(error, 'majorErrorCode')
        minor = get_attr(error, 'minorErrorCode')
        message = get_attr(error, 'message')

    if not message:
        message = reason or NO_FURTHER_INFORMATION

    kwargs = {'http_code': status, 'major_code': major,
              'minor_code': minor, 'driver': driver}

    if status in AUTHENTICATION_CODES:
        return AuthenticationError(message, **kwargs)
    if minor and BUSY_ENTITY in minor:
        return BusyEntityError(message, **kwargs)
    return ProviderError(message, **kwargs)


def parse_error(status, body, reason=None, driver=None):
    """
    Turn a failed response into a :class:`ProviderError`.

    Never raises: an absent or unparseable body still produces an error,
    carrying the raw body (or the reason phrase) as its message.
    """
    error = None

    if body:
        try:
            error = find_error_element(parse_xml(body))
        except MalformedResponseError:
            error = None
        if error is None:
            reason = body.strip() or reason

    return exception_from_element(status, error, reason=reason,
                                  driver=driver)
