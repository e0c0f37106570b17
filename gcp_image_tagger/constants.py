"""Constants and error codes for the GCP image tagger."""


class Constants:
    """
    Constants used throughout the gcp_image_tagger application.

    Attributes:
        JPEG_EXTENSIONS (set): File extensions that may carry EXIF GPS data.
        IMAGE_EXTENSIONS (set): File extensions accepted when adding images.
        EARTH_RADIUS_M (float): Mean Earth radius used by the haversine formula.
        DEFAULT_FILTER_DISTANCE (float): Default distance threshold in meters.
        DEFAULT_DISTANCE_MODEL (str): Distance model used when none is configured.
        DISTANCE_MODELS (tuple): Supported distance models.
        HOME_ROUTE (str): Route navigated to when a tagging view cannot be entered.
        GCPS_MAP_ROUTE (str): Route navigated to after committing or leaving a view.
        DEFAULT_PROJECT_FILE (str): Default JSON project file name.
        DEFAULT_GCP_LIST_FILE (str): Default gcp_list.txt output name.

    Classes:
        Messages: Progress and status strings reported to listeners.
        ErrorCodes: Application exit codes indicating various error and success states.
    """

    JPEG_EXTENSIONS = {".jpg", ".jpeg", ".JPG", ".JPEG"}
    IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".tif", ".tiff"}

    EARTH_RADIUS_M = 6371000.0

    # Distance filtering
    DEFAULT_FILTER_DISTANCE = 10.0
    DEFAULT_DISTANCE_MODEL = "haversine"
    DISTANCE_MODELS = ("haversine", "geodesic")

    # Navigation
    HOME_ROUTE = "/"
    GCPS_MAP_ROUTE = "gcps-map"

    DEFAULT_PROJECT_FILE = "project.json"
    DEFAULT_GCP_LIST_FILE = "gcp_list.txt"

    # KML view ranges in meters
    KML_GCP_VIEW_RANGE = 200
    KML_IMAGE_VIEW_RANGE = 50

    class Messages:
        """Progress messages reported by the tagging session and the detection driver."""

        LOADING_IMAGES = "Loading images..."
        CALCULATING_DISTANCES = "Calculating distances from GCP..."
        READING_COORDINATES = "Reading coordinates..."
        DETECTING = "Detecting GCPs in images"
        GCP_FOUND = "GCP found"
        NO_GCP_FOUND = "No GCP found"
        DETECTION_DISCARDED = "Image removed, detection discarded"
        INTERRUPTING = "Interrupting..."
        INTERRUPTED = "Interrupted"
        DONE = "Done"
        REMOVE_TITLE = "Remove image"
        REMOVE_TEXT = (
            "This image is associated with other GCPs. "
            "Do you want to remove it from the list?"
        )

    class ErrorCodes:
        """
        Integer exit codes used by the command line entry point.

        Attributes:
            SUCCESS (int): Operation completed successfully.
            INTERRUPTED (int): Operation was interrupted.
            GCP_NOT_FOUND (int): The requested GCP is missing from the project.
            PROJECTION_ERROR (int): The project's projection could not be used.
            DETECTION_ERROR (int): The auto-detector could not be loaded.
            FILE_OPERATION_ERROR (int): Error occurred during file operation.
            GPS_DATA_ERROR (int): Error related to GPS data.
            CONFIGURATION_ERROR (int): Error in application configuration.
            GENERAL_ERROR (int): General or unspecified error.
        """

        SUCCESS = 0
        INTERRUPTED = 1
        GCP_NOT_FOUND = 3
        PROJECTION_ERROR = 5
        DETECTION_ERROR = 6
        FILE_OPERATION_ERROR = 17
        GPS_DATA_ERROR = 18
        CONFIGURATION_ERROR = 19
        GENERAL_ERROR = 20
