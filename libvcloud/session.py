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
Login, organisation discovery and session caching.

A :class:`Session` is built completely before it is stored, so a reader of
the cache either gets the previous session or the new one. Concurrent
refreshes for the same account are serialised with a per-account lock
kept on the cache.
"""

import logging
from collections import namedtuple
from http import client as httplib

from libvcloud.common.errors import parse_error
from libvcloud.common.types import AuthenticationError
from libvcloud.common.types import MediaType
from libvcloud.common.types import VCloudError
from libvcloud.dc import DataCenter, Region
from libvcloud.utils.cache import SESSION_TTL
from libvcloud.utils.xml import get_attr, iter_named, parse_xml
from libvcloud.versions import VersionNegotiator, matches

__all__ = [
    'AUTH_TOKEN_HEADER',
    'Session',
    'SessionManager',
    'accept_header',
    'endpoint_from_href',
]

_logger = logging.getLogger(__name__)

AUTH_TOKEN_HEADER = 'x-vcloud-authorization'

Session = namedtuple('Session', ['token', 'version', 'endpoint', 'region',
                                 'data_centers'])


def accept_header(version):
    return 'application/*+xml;version=%s' % (version)


def endpoint_from_href(href):
    """
    Return the part of an API href in front of its ``/api/`` segment.

    >>> endpoint_from_href('https://vcd.example.com/api/org/42')
    'https://vcd.example.com'
    >>> endpoint_from_href('https://vcd.example.com/api/v0.8/org/42')
    'https://vcd.example.com'
    """
    idx = href.rfind('/api/')
    if idx == -1:
        return href.rsplit('/', 2)[0]
    return href[:idx]


def _last_segment(href):
    return href.rstrip('/').rsplit('/', 1)[-1]


def _region_id(href, compat):
    org_id = _last_segment(href)
    return '/org/' + org_id if compat else org_id


def decode_org_links(element, account, compat=False):
    """
    Find the organisation of ``account`` in a 1.5+ session document, which
    lists organisations as ``Link`` elements.

    :return: ``(Region, org_href)`` or ``None``.
    """
    for link in iter_named(element, 'Link'):
        if get_attr(link, 'type') != MediaType.ORG:
            continue

        name = get_attr(link, 'name')
        href = get_attr(link, 'href')
        if name != account or not href:
            continue

        return Region(_region_id(href, compat), name), href
    return None


def decode_orgs(element, account, compat=False):
    """
    Find the organisation of ``account`` in a pre-1.5 ``OrgList``
    document.

    :return: ``(Region, org_href)`` or ``None``.
    """
    for org in iter_named(element, 'Org'):
        href = get_attr(org, 'href')
        if not href or not href.endswith('/org/' + account):
            continue

        name = get_attr(org, 'name') or account
        return Region(_region_id(href, compat), name), href
    return None


def decode_data_centers(element, region, compat=False):
    data_centers = []

    for link in iter_named(element, 'Link'):
        if get_attr(link, 'type') != MediaType.VDC:
            continue

        name = get_attr(link, 'name')
        if name is None:
            continue

        href = get_attr(link, 'href', '')
        vdc_id = _last_segment(href) if href else href
        if compat:
            vdc_id = '/vdc/' + vdc_id
        data_centers.append(DataCenter(vdc_id, name, region.id))

    return tuple(data_centers)


class SessionManager(object):
    """
    Hands out the cached :class:`Session` of a driver's account, logging in
    when there is none.

    :param driver: The owning :class:`libvcloud.driver.VCloudDriver`.
    :param cache: Cache for sessions and negotiated versions. Defaults to
                  the driver's cache.
    """

    def __init__(self, driver, cache=None):
        self.driver = driver
        self.cache = cache if cache is not None else driver.cache

    @property
    def key(self):
        context = self.driver.context
        return (context.endpoint, context.account)

    def authenticate(self, force=False):
        """
        :param force: Log in again even if a cached session exists.
        :rtype: :class:`Session`
        """
        key = self.key

        if not force:
            session = self.cache.get(key)
            if session is not None:
                _logger.debug('Session cache hit for %s', key[1])
                return session

        with self.cache.refresh_lock(key):
            if not force:
                # another thread may have logged in while we waited
                session = self.cache.get(key)
                if session is not None:
                    return session

            _logger.debug('Logging in to %s as %s', key[0], key[1])
            session = self._login()
            self.cache.put(key, session, ttl=SESSION_TTL)
            return session

    def invalidate(self):
        self.cache.invalidate(self.key)

    def _login(self):
        driver = self.driver
        context = driver.context
        connection = driver.connection
        compat = driver.is_compat()

        version = VersionNegotiator(connection, self.cache,
                                    driver=driver).negotiate(
            context.endpoint, driver.get_version_preference())

        user = '%s@%s' % (context.access_public, context.account)
        response = connection.request(
            version.login_url, method='POST',
            headers={'Accept': accept_header(version.version)},
            auth=(user, context.access_private))

        if response.status != httplib.OK:
            if not response.body:
                raise AuthenticationError('Authentication failed',
                                          http_code=response.status,
                                          driver=driver)
            error = parse_error(response.status, response.body,
                                reason=response.reason, driver=driver)
            _logger.error('[%s : %s] %s', response.status,
                          error.minor_code or 'Error', error.value)
            raise error

        token = response.headers.get(AUTH_TOKEN_HEADER)
        if not token:
            raise AuthenticationError('No token was provided',
                                      http_code=response.status,
                                      driver=driver)

        document = parse_xml(response.body, driver=driver)
        if matches(version.version, '1.5'):
            found = decode_org_links(document, context.account, compat)
        else:
            found = decode_orgs(document, context.account, compat)

        if found is None:
            raise VCloudError('No org was identified for %s' %
                              (context.account), driver=driver)

        region, org_href = found
        data_centers = self._load_data_centers(org_href, version, token,
                                               region, compat)

        return Session(token=token, version=version,
                       endpoint=endpoint_from_href(org_href), region=region,
                       data_centers=data_centers)

    def _load_data_centers(self, org_href, version, token, region, compat):
        response = self.driver.connection.request(
            org_href, headers={'Accept': accept_header(version.version),
                               AUTH_TOKEN_HEADER: token})

        if response.status != httplib.OK:
            error = parse_error(response.status, response.body,
                                reason=response.reason, driver=self.driver)
            _logger.error('[%s : %s] %s', response.status,
                          error.minor_code or 'Error', error.value)
            raise error

        return decode_data_centers(parse_xml(response.body,
                                             driver=self.driver),
                                   region, compat)
