"""The shared chip interface and the ESP32, ESP32-C3, ESP32-S2, ESP32-S3 and ESP8266."""