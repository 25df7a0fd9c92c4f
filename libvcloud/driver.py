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
VMware vCloud Director driver
"""

import logging
import threading
from datetime import datetime
from typing import List
from typing import Optional

import libvcloud.security
from libvcloud.addressing import to_id
from libvcloud.common.base import VCloudConnection
from libvcloud.common.types import VCloudError
from libvcloud.context import ProviderContext
from libvcloud.dc import VDCServices
from libvcloud.method import VCloudMethod
from libvcloud.session import SessionManager
from libvcloud.utils.cache import SESSION_TTL, TTLCache
from libvcloud.utils.xml import escape_xml

__all__ = [
    'VCloudDriver',
    'DEFAULT_CLOUD_NAME',
    'DEFAULT_PROVIDER_NAME',
]

_logger = logging.getLogger(__name__)

DEFAULT_CLOUD_NAME = 'Private vCloud Cloud'
DEFAULT_PROVIDER_NAME = 'VMware'

# e.g. 2013-02-02T22:16:45.917-05:00, 2013-02-02T22:16:45.917Z and
# 2013-02-02T22:16:45Z
TIME_FORMATS = (
    '%Y-%m-%dT%H:%M:%S.%f%z',
    '%Y-%m-%dT%H:%M:%S%z',
)


class VCloudDriver(object):
    """
    Entry point for talking to one organisation of a vCloud Director
    installation.

    >>> from libvcloud.context import ProviderContext
    >>> ctx = ProviderContext('https://vcd.example.com', 'acme', 'jdoe',
    ...                       'secret')
    >>> driver = VCloudDriver(ctx)
    >>> driver.method().get('vApp', 'vapp-1234')  # doctest: +SKIP
    """

    name = 'vCloud Director'
    website = 'https://www.vmware.com/products/vcloud-director'
    connectionCls = VCloudConnection

    def __init__(self, context, cache=None):
        # type: (ProviderContext, Optional[TTLCache]) -> None
        """
        :param context: Connection settings.
        :param cache: Cache shared between drivers. Sessions are keyed by
                      endpoint and account only, so drivers sharing a
                      cache must log in to an org as the same user.
                      Give each user its own cache otherwise.
        """
        self.context = context
        self.cache = cache if cache is not None else TTLCache(SESSION_TTL)
        self.cancel_event = threading.Event()
        self.session_manager = SessionManager(self)
        self.connection = self._create_connection()

    def _create_connection(self):
        verify = None
        if self.is_insecure():
            _logger.warning(libvcloud.security.VERIFY_SSL_DISABLED_MSG,
                            self.context.endpoint)
            verify = False

        connection = self.connectionCls(self.context.endpoint,
                                        proxy_url=self.context.proxy_url,
                                        verify=verify,
                                        timeout=self.context.timeout)
        connection.driver = self
        return connection

    @property
    def cloud_name(self):
        return self.context.cloud_name or DEFAULT_CLOUD_NAME

    @property
    def provider_name(self):
        return self.context.provider_name or DEFAULT_PROVIDER_NAME

    def is_compat(self):
        # type: () -> bool
        return self.context.compat

    def is_insecure(self):
        # type: () -> bool
        return self.context.insecure

    def get_version_preference(self):
        # type: () -> Optional[List[str]]
        return self.context.version_preference or None

    def method(self):
        return VCloudMethod(self)

    def get_data_center_services(self):
        return VDCServices(self)

    def test_context(self):
        """
        Log in with the configured credentials.

        :return: The account on success, ``None`` otherwise.
        """
        try:
            self.session_manager.authenticate(force=True)
        except VCloudError as e:
            _logger.warning('Unable to connect to %s for %s: %s',
                            self.cloud_name, self.context.account, e)
            return None
        return self.context.account

    def to_id(self, url):
        return to_id(url, compat=self.is_compat())

    def parse_time(self, value):
        # type: (Optional[str]) -> int
        """
        Convert a vCloud timestamp to milliseconds since the epoch. Empty
        values give ``0``.
        """
        if not value:
            return 0

        for fmt in TIME_FORMATS:
            try:
                parsed = datetime.strptime(value, fmt)
            except ValueError:
                continue
            return int(round(parsed.timestamp() * 1000))

        raise VCloudError('Could not parse date: %s' % (value), driver=self)

    @staticmethod
    def escape_xml(text):
        return escape_xml(text)

    def __repr__(self):
        return '%s - %s [%s]' % (self.provider_name, self.cloud_name,
                                 self.context.account)
