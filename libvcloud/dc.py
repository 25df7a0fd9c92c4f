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
Regions and data centers as vCloud exposes them: an organisation is a
region and each of its virtual data centers (VDCs) is a data center.
"""

from libvcloud.utils.misc import ReprMixin

__all__ = [
    'Region',
    'DataCenter',
    'VDCServices',
]

DEFAULT_JURISDICTION = 'US'


class Region(ReprMixin):
    """
    A vCloud organisation.
    """

    _repr_attributes = ['id', 'name', 'jurisdiction']

    def __init__(self, id, name, jurisdiction=DEFAULT_JURISDICTION,
                 active=True, available=True):
        self.id = id
        self.name = name
        self.jurisdiction = jurisdiction
        self.active = active
        self.available = available

    def __eq__(self, other):
        return isinstance(other, Region) and self.id == other.id

    def __hash__(self):
        return hash(self.id)


class DataCenter(ReprMixin):
    """
    A virtual data center belonging to a :class:`Region`.
    """

    _repr_attributes = ['id', 'name', 'region_id']

    def __init__(self, id, name, region_id, active=True, available=True):
        self.id = id
        self.name = name
        self.region_id = region_id
        self.active = active
        self.available = available

    def __eq__(self, other):
        return isinstance(other, DataCenter) and self.id == other.id

    def __hash__(self):
        return hash(self.id)


class VDCServices(object):
    def __init__(self, driver):
        self.driver = driver

    def get_provider_term_for_region(self, locale=None):
        return 'VDC'

    def get_provider_term_for_data_center(self, locale=None):
        return 'VDC Unit'

    def list_regions(self):
        return [self.driver.method().get_region()]

    def get_region(self, region_id):
        for region in self.list_regions():
            if region.id == region_id:
                return region
        return None

    def list_data_centers(self, region_id):
        """
        Return the VDCs of ``region_id``. Only the region of the current
        session has any.
        """
        method = self.driver.method()
        if method.get_region().id != region_id:
            return []
        return list(method.list_data_centers())

    def get_data_center(self, data_center_id):
        for dc in self.driver.method().list_data_centers():
            if dc.id == data_center_id:
                return dc
        return None
