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

"""
API version discovery and selection.
"""

import logging
from collections import namedtuple
from http import client as httplib

from libvcloud.common.errors import parse_error
from libvcloud.common.types import NoSupportedVersionError
from libvcloud.utils.cache import TTLCache, VERSION_TTL
from libvcloud.utils.xml import findtext, iter_named, parse_xml

__all__ = [
    'VERSIONS',
    'NegotiatedVersion',
    'is_supported',
    'matches',
    'rank_versions',
    'parse_versions',
    'VersionNegotiator',
]

_logger = logging.getLogger(__name__)

# Most recent first
VERSIONS = ('5.1', '1.5', '1.0', '0.9', '0.8')

NegotiatedVersion = namedtuple('NegotiatedVersion', ['version', 'login_url'])


def is_supported(version):
    return version in VERSIONS


def matches(current, minimum, maximum=None):
    """
    Return ``True`` when ``current`` lies between ``minimum`` and
    ``maximum`` (inclusive) in :data:`VERSIONS` order.

    ``maximum`` defaults to the most recent known version, so
    ``matches(v, '1.5')`` reads as "v is 1.5 or newer". Unknown versions
    never match.
    """
    if maximum is None:
        maximum = VERSIONS[0]
    if not (is_supported(current) and is_supported(minimum) and
            is_supported(maximum)):
        return False

    position = VERSIONS.index(current)
    return VERSIONS.index(maximum) <= position <= VERSIONS.index(minimum)


def rank_versions(candidates, preference=None):
    """
    Order candidate versions, best first.

    Candidates are ranked by their position in ``preference``, then by
    their position in :data:`VERSIONS`, then by reverse lexicographic
    order of the version string.

    :param candidates: :class:`NegotiatedVersion` items or plain strings.
    :param preference: Version strings, most preferred first.
    :rtype: ``list``
    """
    preference = list(preference or [])

    def version_of(candidate):
        return getattr(candidate, 'version', candidate)

    def position(sequence, value):
        try:
            return sequence.index(value)
        except ValueError:
            return len(sequence)

    # sorted() is stable, so the lexicographic pass breaks ties left by
    # the positional one
    ranked = sorted(candidates, key=version_of, reverse=True)
    return sorted(ranked, key=lambda c: (position(preference, version_of(c)),
                                         position(VERSIONS, version_of(c))))


def parse_versions(element):
    """
    Decode a ``SupportedVersions`` document into
    :class:`NegotiatedVersion` items, skipping incomplete entries and
    versions this library does not speak.
    """
    result = []

    for info in iter_named(element, 'VersionInfo'):
        version = findtext(info, 'Version')
        login_url = findtext(info, 'LoginUrl')

        if version is None or login_url is None:
            continue
        if not is_supported(version):
            _logger.debug('Ignoring unsupported API version %s', version)
            continue
        result.append(NegotiatedVersion(version, login_url))

    return result


class VersionNegotiator(object):
    """
    Picks the API version to talk to an endpoint with, caching the choice
    for a day.
    """

    def __init__(self, connection, cache=None, driver=None):
        self.connection = connection
        self.cache = cache if cache is not None else TTLCache(VERSION_TTL)
        self.driver = driver

    def negotiate(self, endpoint, preference=None):
        """
        :param endpoint: Cloud endpoint, e.g. ``https://vcd.example.com``.
        :param preference: Preferred version strings, most preferred first.
        :rtype: :class:`NegotiatedVersion`
        """
        endpoint = endpoint.rstrip('/')
        key = ('version', endpoint)

        cached = self.cache.get(key)
        if cached is not None:
            _logger.debug('Using cached API version %s for %s',
                          cached.version, endpoint)
            return cached

        _logger.debug('No cached API version for %s, asking the cloud',
                      endpoint)
        response = self.connection.request(endpoint + '/api/versions')

        if response.status != httplib.OK:
            error = parse_error(response.status, response.body,
                                reason=response.reason, driver=self.driver)
            _logger.error('[%s : %s] %s', response.status,
                          error.minor_code or 'Error', error.value)
            raise error

        candidates = parse_versions(parse_xml(response.body,
                                              driver=self.driver))
        if not candidates:
            raise NoSupportedVersionError(
                'Unable to identify a supported version at %s' % (endpoint),
                driver=self.driver)

        best = rank_versions(candidates, preference)[0]
        self.cache.put(key, best, ttl=VERSION_TTL)
        _logger.debug('Negotiated API version %s for %s', best.version,
                      endpoint)
        return best
