# Copyright 2025 Google LLC
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
# ==============================================================================


"""Enumerations shared by the service, the model wrappers and scripts."""

from enum import Enum


class HouseStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PropertyType(str, Enum):
    HOUSE = "house"
    APARTMENT = "apartment"
    COMPANY = "company"


class PostStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"


class AnalysisMode(str, Enum):
    """Plan analysis flavour. Anything other than "operational" is preventive."""

    PREVENTIVE = "preventive"
    OPERATIONAL = "operational"

    @classmethod
    def parse(cls, value: str | None) -> "AnalysisMode":
        if value == cls.OPERATIONAL.value:
            return cls.OPERATIONAL
        return cls.PREVENTIVE


class DownloadSource(str, Enum):
    """Which path produced the bytes of a stored plan."""

    STORAGE = "storage"
    PUBLIC_URL = "public_url"


class StationStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class UploadFolder(str, Enum):
    HOUSE_PLANS = "house-plans"
    HOUSE_PHOTOS = "house-photos"
    HOUSE_DOCUMENTS = "house-documents"


class HydrantStatus(str, Enum):
    FUNCTIONAL = "functional"
    MAINTENANCE = "maintenance"
    OUT_OF_ORDER = "out_of_order"


class GeoRequestStatus(str, Enum):
    PENDING = "pending"
    LOCATED = "located"
